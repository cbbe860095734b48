"""Validation helpers for media received over the chat websocket."""

import base64
import binascii
import re
import uuid
from pathlib import Path

ALLOWED_AUDIO_TYPES = {
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/aac",
    "audio/ogg",
    "audio/opus",
    "audio/flac",
}
AUDIO_EXTENSIONS = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/webm": ".webm",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/aac": ".aac",
    "audio/ogg": ".ogg",
    "audio/opus": ".ogg",
    "audio/flac": ".flac",
}
ALLOWED_ATTACHMENT_EXTENSIONS = {".pdf", ".png", ".jpg", ".jpeg", ".tif", ".tiff", ".webp", ".bmp"}
MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def decode_base64_payload(data: str, field: str = "data_b64") -> bytes:
    """Decode a base64 (optionally data-URL) payload, rejecting empty input."""
    text = (data or "").strip()
    if text.startswith("data:") and "," in text:
        text = text.split(",", 1)[1]
    if not text:
        raise ValueError(f"{field} is required.")
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"{field} is not valid base64.") from exc
    if not raw:
        raise ValueError(f"{field} decoded to an empty payload.")
    return raw


def audio_filename(mime_type: str) -> str:
    """Return a transcription-friendly filename for a supported audio MIME type."""
    content_type = (mime_type or "").lower().split(";", 1)[0].strip()
    if content_type not in ALLOWED_AUDIO_TYPES:
        raise ValueError(f"Unsupported audio content type: {mime_type}")
    return "voice-note" + AUDIO_EXTENSIONS[content_type]


def attachment_filename(original: str) -> str:
    """Return a unique, filesystem-safe name for an uploaded design file."""
    name = Path(original or "").name
    suffix = Path(name).suffix.lower()
    if suffix not in ALLOWED_ATTACHMENT_EXTENSIONS:
        raise ValueError(f"Unsupported attachment type: {suffix or 'unknown'}")
    stem = _UNSAFE_CHARS.sub("_", Path(name).stem).strip("._") or "archivo"
    return f"{uuid.uuid4().hex[:8]}_{stem[:60]}{suffix}"


def validate_attachment_size(raw: bytes) -> None:
    if len(raw) > MAX_ATTACHMENT_BYTES:
        raise ValueError("Attachment exceeds the maximum allowed size.")
