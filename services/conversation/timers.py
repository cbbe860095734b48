"""Cancellable timers and the per-user idle warning/expiry pair."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from services.conversation.user_lanes import UserLanes

LOGGER = logging.getLogger(__name__)

TimerJob = Callable[[], Awaitable[None]]


class TimerHandle:
	"""One-shot timer whose job runs inside a user's lane.

	The event-loop callback only dispatches the job; it never awaits itself.
	"""

	def __init__(self, user_id: str, delay: float, job: TimerJob, lanes: UserLanes, name: str = "timer") -> None:
		self.user_id = user_id
		self.name = name
		self._job = job
		self._lanes = lanes
		self._fired = False
		self._cancelled = False
		loop = asyncio.get_running_loop()
		self._handle = loop.call_later(delay, self._fire)

	def _fire(self) -> None:
		if self._cancelled:
			return
		self._fired = True
		LOGGER.debug("Timer %s fired for user %s", self.name, self.user_id)
		self._lanes.dispatch(self.user_id, self._job)

	def cancel(self) -> None:
		if not self._cancelled and not self._fired:
			self._handle.cancel()
		self._cancelled = True

	@property
	def active(self) -> bool:
		return not (self._cancelled or self._fired)


@dataclass
class IdleTimerPair:
	warning: TimerHandle
	expiry: TimerHandle

	def cancel(self) -> None:
		self.warning.cancel()
		self.expiry.cancel()

	@property
	def active(self) -> bool:
		return self.warning.active or self.expiry.active


class IdleTimers:
	"""Keep at most one live warning/expiry pair per user.

	`arm` always cancels the previous pair before creating the new one, so
	consecutive turns never accumulate timers.
	"""

	def __init__(self, warning_seconds: float, timeout_seconds: float, lanes: UserLanes) -> None:
		if timeout_seconds < warning_seconds:
			raise ValueError("Idle timeout must not be shorter than the warning delay.")
		self.warning_seconds = warning_seconds
		self.timeout_seconds = timeout_seconds
		self.lanes = lanes
		self._pairs: Dict[str, IdleTimerPair] = {}

	def arm(self, user_id: str, on_warning: TimerJob, on_expire: TimerJob) -> IdleTimerPair:
		self.clear(user_id)

		async def _expire() -> None:
			self._pairs.pop(user_id, None)
			await on_expire()

		pair = IdleTimerPair(
			warning=TimerHandle(user_id, self.warning_seconds, on_warning, self.lanes, name="idle-warning"),
			expiry=TimerHandle(user_id, self.timeout_seconds, _expire, self.lanes, name="idle-expiry"),
		)
		self._pairs[user_id] = pair
		return pair

	def clear(self, user_id: str) -> None:
		pair = self._pairs.pop(user_id, None)
		if pair is not None:
			pair.cancel()
			LOGGER.debug("Idle timers cleared for user %s", user_id)

	def get(self, user_id: str) -> Optional[IdleTimerPair]:
		return self._pairs.get(user_id)

	def live_count(self, user_id: str) -> int:
		"""Number of live pairs for the user (0 or 1)."""
		pair = self._pairs.get(user_id)
		return 1 if pair is not None and pair.active else 0

	def close(self) -> None:
		for user_id in list(self._pairs):
			self.clear(user_id)
