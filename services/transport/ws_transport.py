"""Outbound side of the chat transport: one websocket per user id."""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Deque, Dict, List

from fastapi import WebSocket

LOGGER = logging.getLogger(__name__)

OUTBOX_LIMIT = 20


class WebSocketTransport:
	"""Deliver replies to the user's open websocket.

	Replies produced while the user is disconnected (idle warnings, promos)
	are kept in a small outbox and flushed when the user reconnects.
	"""

	def __init__(self) -> None:
		self._sockets: Dict[str, WebSocket] = {}
		self._outbox: Dict[str, Deque[str]] = {}

	async def register(self, user_id: str, websocket: WebSocket) -> None:
		self._sockets[user_id] = websocket
		pending = self._outbox.pop(user_id, None)
		for text in pending or ():
			await self._send_frame(websocket, text)

	def unregister(self, user_id: str, websocket: WebSocket) -> None:
		if self._sockets.get(user_id) is websocket:
			del self._sockets[user_id]

	def connected(self) -> List[str]:
		return list(self._sockets)

	async def send(self, user_id: str, text: str) -> None:
		websocket = self._sockets.get(user_id)
		if websocket is None:
			LOGGER.info("User %s offline; reply kept in outbox", user_id)
			self._outbox.setdefault(user_id, deque(maxlen=OUTBOX_LIMIT)).append(text)
			return
		await self._send_frame(websocket, text)

	@staticmethod
	async def _send_frame(websocket: WebSocket, text: str) -> None:
		await websocket.send_text(json.dumps({"type": "message.reply", "text": text}, ensure_ascii=False))
