"""Periodic removal of abandoned conversation sessions."""

import asyncio
from typing import List

from services.conversation.orchestrator import ConversationOrchestrator


class SessionCleaner:
    """Drop sessions whose last interaction is older than the idle window."""

    def __init__(self, orchestrator: ConversationOrchestrator, max_idle_seconds: float = 3_600) -> None:
        """
        Args:
            orchestrator: Orchestrator owning the session store and per-user lanes.
            max_idle_seconds: Age threshold in seconds; older sessions are removed.
        """
        self.orchestrator = orchestrator
        self.max_idle_seconds = max_idle_seconds

    def _in_use(self, user_id: str) -> bool:
        return self.orchestrator.lanes.is_busy(user_id) or self.orchestrator.blacklist.contains(user_id)

    def _drop_expired_blacklist_sessions(self) -> List[str]:
        # Eviction resets the session to an empty one, which holds nothing worth keeping.
        dropped = []
        for user_id in self.orchestrator.blacklist.purge_expired():
            if self.orchestrator.lanes.is_busy(user_id):
                continue
            if self.orchestrator.store.discard(user_id):
                dropped.append(user_id)
        return dropped

    def prune_idle_sessions(self) -> List[str]:
        """Purge expired blacklist entries, then remove idle sessions that are
        neither mid-turn nor blacklisted; return the removed ids."""
        dropped = self._drop_expired_blacklist_sessions()
        return dropped + self.orchestrator.store.prune_idle(self.max_idle_seconds, keep=self._in_use)

    async def run_periodic_cleanup(self, interval_seconds: float = 600) -> None:
        """
        Repeatedly prune idle sessions at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between cleanup runs.
        """
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                self.prune_idle_sessions()
            except asyncio.CancelledError:
                break
