"""WebSocket endpoint for customer chat."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.conversation.orchestrator import ConversationOrchestrator
from services.transport.ws_session import ChatSessionHandler

router = APIRouter()


def _require_orchestrator(websocket: WebSocket) -> ConversationOrchestrator:
	orchestrator = getattr(websocket.app.state, "orchestrator", None)
	if orchestrator is None:
		raise HTTPException(status_code=500, detail="Orchestrator unavailable")
	return orchestrator


@router.websocket("/ws/{user_id}")
async def chat_socket(
	websocket: WebSocket,
	user_id: str,
	orchestrator: ConversationOrchestrator = Depends(_require_orchestrator),
):
	"""Carry text, voice notes and attachments for one customer."""
	await websocket.accept()
	transport = websocket.app.state.transport
	await transport.register(user_id, websocket)

	handler = ChatSessionHandler(
		orchestrator,
		getattr(websocket.app.state, "transcriber", None),
		websocket.app.state.attachments,
	)
	try:
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except json.JSONDecodeError:
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
				continue
			if not isinstance(payload, dict):
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be a JSON object"}))
				continue
			await handler.handle(websocket, user_id, payload)
	finally:
		transport.unregister(user_id, websocket)
