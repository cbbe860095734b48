"""Per-user execution lanes that linearize work for one user id."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Set

LOGGER = logging.getLogger(__name__)


class UserLanes:
	"""Hand out one `asyncio.Lock` per user id.

	Work for the same user runs one at a time; different users never wait on
	each other. Locks are created lazily and dropped once idle.
	"""

	def __init__(self) -> None:
		self._locks: Dict[str, asyncio.Lock] = {}
		# Holders plus waiters per user; the lock is forgotten when this hits zero.
		self._pending: Dict[str, int] = {}
		self._tasks: Set[asyncio.Task] = set()

	def _lock_for(self, user_id: str) -> asyncio.Lock:
		lock = self._locks.get(user_id)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[user_id] = lock
		return lock

	@asynccontextmanager
	async def hold(self, user_id: str) -> AsyncIterator[None]:
		"""Enter the user's lane for the duration of the block."""
		lock = self._lock_for(user_id)
		self._pending[user_id] = self._pending.get(user_id, 0) + 1
		try:
			async with lock:
				yield
		finally:
			remaining = self._pending[user_id] - 1
			if remaining:
				self._pending[user_id] = remaining
			else:
				self._pending.pop(user_id, None)
				self._locks.pop(user_id, None)

	def is_busy(self, user_id: str) -> bool:
		lock = self._locks.get(user_id)
		return bool(lock and lock.locked())

	def dispatch(self, user_id: str, job: Callable[[], Awaitable[None]]) -> asyncio.Task:
		"""Run `job` inside the user's lane as a background task.

		Timer and debounce callbacks use this so they never block the loop.
		Exceptions are logged and swallowed at this boundary only.
		"""

		async def _runner() -> None:
			async with self.hold(user_id):
				try:
					await job()
				except asyncio.CancelledError:
					raise
				except Exception:
					LOGGER.exception("Lane job failed for user %s", user_id)

		task = asyncio.ensure_future(_runner())
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return task

	async def drain(self) -> None:
		"""Wait for every dispatched job; used on shutdown and in tests."""
		while self._tasks:
			await asyncio.gather(*list(self._tasks), return_exceptions=True)

	def cancel_all(self) -> None:
		for task in list(self._tasks):
			task.cancel()
