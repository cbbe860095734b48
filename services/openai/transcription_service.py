"""Voice-note transcription built on OpenAI's transcription models."""

import io
import logging

from openai import AsyncOpenAI, OpenAIError

LOGGER = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """Raised when a voice note cannot be turned into text."""


class TranscriptionService:
    """Create text transcriptions from customer voice notes."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1") -> None:
        if client is None:
            raise ValueError("OpenAI client is required for transcription.")
        self.client = client
        self.model = model

    async def transcribe(self, audio_bytes: bytes, filename: str = "voice-note.ogg") -> str:
        """Transcribe audio bytes (ogg/opus, mp3, wav, m4a...) into Spanish text."""
        if not audio_bytes:
            raise ValueError("audio_bytes must contain data for transcription.")

        audio_file = io.BytesIO(audio_bytes)
        audio_file.name = filename

        try:
            response = await self.client.audio.transcriptions.create(
                model=self.model,
                file=audio_file,
                language="es",
            )
        except OpenAIError as exc:
            LOGGER.error("OpenAI transcription request failed: %s", exc)
            raise TranscriptionError("Transcription request failed") from exc

        transcript = getattr(response, "text", None)
        if not transcript:
            raise TranscriptionError("Transcription response did not include text.")
        return transcript.strip()
