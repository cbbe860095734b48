"""Inbound websocket frames for the customer chat."""

from typing import Literal, Optional, Union

from pydantic import BaseModel


class ChatFrame(BaseModel):
	request_id: Optional[Union[str, int]] = None
	display_name: Optional[str] = None


class TextFrame(ChatFrame):
	type: Literal["message.text"]
	text: str


class AudioFrame(ChatFrame):
	type: Literal["message.audio"]
	audio_b64: str
	mime_type: str = "audio/ogg"


class AttachmentFrame(ChatFrame):
	type: Literal["message.attachment"]
	data_b64: str
	filename: str


FRAME_TYPES = {
	"message.text": TextFrame,
	"message.audio": AudioFrame,
	"message.attachment": AttachmentFrame,
}
