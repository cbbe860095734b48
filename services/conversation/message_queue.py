"""Debounce rapid message bubbles from one user into a single turn."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from services.conversation.user_lanes import UserLanes

LOGGER = logging.getLogger(__name__)

FlushCallback = Callable[[str], Awaitable[None]]


@dataclass
class _PendingBuffer:
	messages: List[str] = field(default_factory=list)
	timer: Optional[asyncio.TimerHandle] = None
	on_flush: Optional[FlushCallback] = None


class MessageQueue:
	"""Collect messages per user until `gap_seconds` pass without a new one.

	Every `enqueue` appends to the user's buffer and restarts the single
	delay timer. When the timer fires the buffer is detached synchronously,
	so a later `enqueue` always starts a fresh buffer, and the joined text is
	handed to the callback inside the user's lane.
	"""

	def __init__(self, gap_seconds: float, lanes: Optional[UserLanes] = None) -> None:
		if gap_seconds < 0:
			raise ValueError("gap_seconds must be non-negative.")
		self.gap_seconds = gap_seconds
		self.lanes = lanes or UserLanes()
		self._buffers: Dict[str, _PendingBuffer] = {}

	def enqueue(self, user_id: str, message: str, on_flush: FlushCallback) -> None:
		"""Buffer `message` and (re)arm the flush timer for `user_id`."""
		buffer = self._buffers.get(user_id)
		if buffer is None:
			buffer = _PendingBuffer()
			self._buffers[user_id] = buffer
			LOGGER.debug("New message buffer for user %s", user_id)
		buffer.messages.append(message)
		# Last writer wins: the most recent callback handles the joined turn.
		buffer.on_flush = on_flush
		if buffer.timer is not None:
			buffer.timer.cancel()
		loop = asyncio.get_running_loop()
		buffer.timer = loop.call_later(self.gap_seconds, self._flush, user_id, buffer)
		LOGGER.info("Queued message for user %s (%d pending)", user_id, len(buffer.messages))

	def _flush(self, user_id: str, buffer: _PendingBuffer) -> None:
		if self._buffers.get(user_id) is not buffer:
			return
		del self._buffers[user_id]
		joined = " ".join(buffer.messages)
		callback = buffer.on_flush
		LOGGER.info("Flushing %d message(s) for user %s", len(buffer.messages), user_id)
		if callback is None:
			return

		async def _deliver() -> None:
			await callback(joined)

		self.lanes.dispatch(user_id, _deliver)

	def clear(self, user_id: str) -> None:
		"""Drop any pending messages for `user_id` without flushing."""
		buffer = self._buffers.pop(user_id, None)
		if buffer is not None and buffer.timer is not None:
			buffer.timer.cancel()
			LOGGER.info("Message buffer cleared for user %s", user_id)

	def pending_count(self, user_id: str) -> int:
		buffer = self._buffers.get(user_id)
		return len(buffer.messages) if buffer else 0

	def is_empty(self, user_id: str) -> bool:
		return self.pending_count(user_id) == 0

	def close(self) -> None:
		for user_id in list(self._buffers):
			self.clear(user_id)
