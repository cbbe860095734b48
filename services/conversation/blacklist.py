"""Time-boxed blacklist of users the bot should not answer."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional

LOGGER = logging.getLogger(__name__)


class Blacklist:
	"""Map user ids to absolute expiry timestamps.

	Entries are evicted lazily: `is_blacklisted` removes an expired entry on
	the first check at or after its expiry and then calls `on_evict`.
	"""

	def __init__(self, clock: Callable[[], float] = time.time, on_evict: Optional[Callable[[str], None]] = None) -> None:
		self._clock = clock
		self._entries: Dict[str, float] = {}
		self.on_evict = on_evict

	def add(self, user_id: str, duration_seconds: float) -> float:
		"""Blacklist `user_id`, replacing any previous entry. Returns the expiry."""
		expiry = self._clock() + duration_seconds
		self._entries[user_id] = expiry
		LOGGER.info("User %s blacklisted for %.0f seconds", user_id, duration_seconds)
		return expiry

	def is_blacklisted(self, user_id: str) -> bool:
		expiry = self._entries.get(user_id)
		if expiry is None:
			return False
		now = self._clock()
		if now < expiry:
			LOGGER.info("User %s is blacklisted (%.0f seconds left)", user_id, expiry - now)
			return True
		del self._entries[user_id]
		LOGGER.info("User %s removed from blacklist", user_id)
		if self.on_evict is not None:
			self.on_evict(user_id)
		return False

	def remove(self, user_id: str) -> bool:
		"""Drop an entry without triggering the eviction hook."""
		removed = self._entries.pop(user_id, None) is not None
		if removed:
			LOGGER.info("User %s manually removed from blacklist", user_id)
		return removed

	def contains(self, user_id: str) -> bool:
		"""Raw membership check that never evicts."""
		return user_id in self._entries

	def status(self) -> List[Dict[str, object]]:
		now = self._clock()
		return [
			{"user_id": user_id, "expires_at": expiry, "seconds_left": max(0.0, expiry - now)}
			for user_id, expiry in self._entries.items()
		]

	def purge_expired(self) -> List[str]:
		"""Evict every expired entry, calling `on_evict` for each; return their ids."""
		now = self._clock()
		expired = [user_id for user_id, expiry in self._entries.items() if now >= expiry]
		for user_id in expired:
			del self._entries[user_id]
			if self.on_evict is not None:
				self.on_evict(user_id)
		if expired:
			LOGGER.info("Purged %d expired blacklist entries", len(expired))
		return expired
