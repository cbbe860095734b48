"""Dispatch chat websocket frames to the conversation orchestrator."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError

from dal.attachment_store import AttachmentStore
from models.chat_frames import FRAME_TYPES, AttachmentFrame, AudioFrame, TextFrame
from models.turn_models import TurnResult
from services.conversation import messages
from services.conversation.orchestrator import ConversationOrchestrator
from services.openai.transcription_service import TranscriptionError, TranscriptionService
from utils.media_validation import (
	attachment_filename,
	audio_filename,
	decode_base64_payload,
	validate_attachment_size,
)

LOGGER = logging.getLogger(__name__)


def turn_payload(result: TurnResult) -> Dict[str, Any]:
	return {
		"type": "turn.result",
		"status": result.status.value,
		"phase": result.phase.value if result.phase else None,
		"recovery_tier": result.recovery_tier,
		"commands": [{"kind": command.kind.value, "payload": command.payload} for command in result.commands],
	}


class ChatSessionHandler:
	"""Route websocket messages for a single customer connection."""

	def __init__(
		self,
		orchestrator: ConversationOrchestrator,
		transcriber: Optional[TranscriptionService],
		attachments: AttachmentStore,
	) -> None:
		self.orchestrator = orchestrator
		self.transcriber = transcriber
		self.attachments = attachments

	async def handle(self, websocket: WebSocket, user_id: str, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		try:
			frame_type = FRAME_TYPES.get(payload.get("type"))
			if frame_type is None:
				raise ValueError("Unsupported message type.")
			frame = frame_type.model_validate(payload)
			if isinstance(frame, TextFrame):
				result = self._queue_text(user_id, frame)
			elif isinstance(frame, AudioFrame):
				result = await self._voice_note(user_id, frame)
			else:
				result = await self._attachment(user_id, frame)
			result["request_id"] = request_id
			await self._send(websocket, result)
		except ValidationError as exc:
			await self._send_error(websocket, request_id, f"Invalid frame: {exc.errors()[0]['msg']}")
		except ValueError as exc:
			await self._send_error(websocket, request_id, str(exc))
		except Exception as exc:
			LOGGER.exception("Websocket frame failed for %s", user_id)
			await self._send_error(websocket, request_id, str(exc))

	def _queue_text(self, user_id: str, frame: TextFrame) -> Dict[str, Any]:
		text = frame.text.strip()
		if not text:
			raise ValueError("Message text is required.")
		self.orchestrator.handle_incoming(user_id, text, frame.display_name)
		return {"type": "message.queued", "pending": self.orchestrator.queue.pending_count(user_id)}

	async def _voice_note(self, user_id: str, frame: AudioFrame) -> Dict[str, Any]:
		if self.transcriber is None:
			raise RuntimeError("Voice notes are not available.")
		audio = decode_base64_payload(frame.audio_b64, "audio_b64")
		filename = audio_filename(frame.mime_type)
		try:
			transcript = await self.transcriber.transcribe(audio, filename=filename)
		except TranscriptionError as exc:
			LOGGER.error("Voice note from %s could not be transcribed: %s", user_id, exc)
			await self.orchestrator.transport.send(user_id, messages.VOICE_NOTE_FAILED)
			return {"type": "transcription.failed"}
		result = await self.orchestrator.handle_voice_note(user_id, transcript, frame.display_name)
		return {**turn_payload(result), "transcript": transcript}

	async def _attachment(self, user_id: str, frame: AttachmentFrame) -> Dict[str, Any]:
		data = decode_base64_payload(frame.data_b64, "data_b64")
		validate_attachment_size(data)
		path = await self.attachments.save(user_id, attachment_filename(frame.filename), data)
		result = await self.orchestrator.handle_attachment(user_id, path, frame.display_name)
		return {**turn_payload(result), "file_path": path}

	async def _send_error(self, websocket: WebSocket, request_id: Any, detail: str) -> None:
		await self._send(websocket, {"type": "error", "request_id": request_id, "detail": detail})

	async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		await websocket.send_text(json.dumps(payload, ensure_ascii=False))
