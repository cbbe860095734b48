"""In-memory store for per-user order sessions."""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from models.catalog_models import FileAnalysis, ServiceInfo
from models.session_models import DraftOrder, FileValidation, HistoryMessage, Measures, ServiceSelection, Session

LOGGER = logging.getLogger(__name__)

# Populated from the catalog only; patches may not set them.
DERIVED_DRAFT_FIELDS = frozenset(
	{"available_widths", "available_finishes", "file_validation_criteria", "computed_area"}
)
SESSION_FIELDS = frozenset(
	{"has_interacted", "initial_messages_sent", "file_upload_attempts", "finalized_at", "last_interaction"}
)


class ServiceLookup(Protocol):
	async def get_service_info(self, name: str) -> Optional[ServiceInfo]:
		...


class SessionStore:
	"""Own every Session, keyed by user id.

	Sessions are created lazily on first reference. Mutations go through
	`update` so that catalog-derived draft fields stay consistent with the
	selected service.
	"""

	def __init__(self, catalog: ServiceLookup, history_word_limit: int = 1500) -> None:
		self._catalog = catalog
		self._history_word_limit = history_word_limit
		self._sessions: Dict[str, Session] = {}

	def __contains__(self, user_id: str) -> bool:
		return user_id in self._sessions

	def count(self) -> int:
		return len(self._sessions)

	def get(self, user_id: str) -> Session:
		"""Return the user's session, creating an empty one if needed."""
		session = self._sessions.get(user_id)
		if session is None:
			session = Session(user_id=user_id)
			self._sessions[user_id] = session
			LOGGER.info("Session created for %s", user_id)
		return session

	async def update(self, user_id: str, patch: Mapping[str, Any]) -> Session:
		"""Apply a partial update.

		Top-level keys are session fields; `draft_order` holds a nested patch
		for the draft. Nested `service`, `measures` and `file_validation`
		mappings are merged field by field, `finishes` is merged key by key.
		A `service.name` change is resolved against the catalog and backfills
		the derived fields; an unknown name leaves the draft untouched.
		"""
		session = self.get(user_id)
		for key, value in patch.items():
			if key == "draft_order":
				await self._patch_draft(session, value or {})
			elif key in SESSION_FIELDS:
				setattr(session, key, value)
			else:
				LOGGER.warning("Ignoring unknown session field %r for %s", key, user_id)
		return session

	async def _patch_draft(self, session: Session, patch: Mapping[str, Any]) -> None:
		draft = session.draft_order
		for key, value in patch.items():
			if key in DERIVED_DRAFT_FIELDS:
				LOGGER.warning("Refusing to set derived field %r directly", key)
			elif key == "service":
				await self._apply_service(session, value or {})
			elif key == "measures":
				self._apply_measures(draft, value or {})
			elif key == "finishes":
				self._apply_finishes(draft, value or {})
			elif key == "file_validation":
				draft.file_validation = FileValidation(
					is_valid=value.get("is_valid", draft.file_validation.is_valid),
					reason=value.get("reason", draft.file_validation.reason),
				)
			elif key == "file_analysis":
				draft.file_analysis = value if value is None or isinstance(value, FileAnalysis) else FileAnalysis(**value)
			elif hasattr(draft, key):
				setattr(draft, key, value)
			else:
				LOGGER.warning("Ignoring unknown draft field %r for %s", key, session.user_id)

	async def _apply_service(self, session: Session, value: Mapping[str, Any]) -> None:
		draft = session.draft_order
		name = (value.get("name") or "").strip()
		if not name:
			return
		info = await self._catalog.get_service_info(name)
		if info is None:
			LOGGER.warning("Service %r not found in catalog for %s", name, session.user_id)
			return

		draft.service = ServiceSelection(name=info.name, category=info.category, type=info.type)
		draft.available_widths = list(info.available_widths)
		draft.available_finishes = dict(info.available_finishes)
		draft.file_validation_criteria = info.file_validation_criteria
		offered = set(info.offered_finishes())
		dropped = [finish for finish in draft.finishes if finish not in offered]
		for finish in dropped:
			del draft.finishes[finish]
		if dropped:
			LOGGER.info("Dropped finishes %s not offered by %s", dropped, info.name)

	@staticmethod
	def _apply_measures(draft: DraftOrder, value: Mapping[str, Any]) -> None:
		measures = Measures(
			width=value.get("width", draft.measures.width),
			height=value.get("height", draft.measures.height),
		)
		draft.measures = measures
		if measures.width is not None and measures.height is not None:
			draft.computed_area = round(measures.width * measures.height, 2)
		else:
			draft.computed_area = None

	@staticmethod
	def _apply_finishes(draft: DraftOrder, value: Mapping[str, Any]) -> None:
		for name, wanted in value.items():
			key = str(name).strip().lower()
			if draft.available_finishes and not draft.available_finishes.get(key, False):
				LOGGER.warning("Finish %r not offered for %s; skipped", key, draft.service.name)
				continue
			draft.finishes[key] = bool(wanted)

	def reset(self, user_id: str, preserve_onboarding: bool = False) -> Session:
		"""Replace the user's session with an empty one."""
		previous = self._sessions.get(user_id)
		session = Session(user_id=user_id)
		if preserve_onboarding and previous is not None:
			session.has_interacted = previous.has_interacted
			session.initial_messages_sent = previous.initial_messages_sent
		self._sessions[user_id] = session
		LOGGER.info("Session reset for %s (preserve_onboarding=%s)", user_id, preserve_onboarding)
		return session

	def append_history(self, user_id: str, role: str, content: str) -> Session:
		"""Append a turn and evict the oldest ones past the word budget."""
		session = self.get(user_id)
		text = content.strip()
		if not text:
			return session
		session.history.append(HistoryMessage(role=role, content=text))

		limit = self._history_word_limit
		while len(session.history) > 1 and session.history_word_count() > limit:
			session.history.pop(0)
		if session.history_word_count() > limit:
			only = session.history[0]
			only.content = " ".join(only.content.split()[-limit:])
		return session

	def history_for_prompt(self, user_id: str) -> List[Dict[str, str]]:
		return [{"role": message.role, "content": message.content} for message in self.get(user_id).history]

	def prune_idle(
		self,
		max_idle_seconds: float,
		now: Optional[float] = None,
		keep: Optional[Callable[[str], bool]] = None,
	) -> List[str]:
		"""Drop sessions idle for longer than `max_idle_seconds`; return their ids.

		`keep` can veto removal of a stale session (e.g. one that is mid-turn).
		"""
		cutoff = (now if now is not None else time.time()) - max_idle_seconds
		stale = [
			user_id for user_id, session in self._sessions.items()
			if session.last_interaction < cutoff and not (keep and keep(user_id))
		]
		for user_id in stale:
			del self._sessions[user_id]
		if stale:
			LOGGER.info("Pruned %d idle sessions", len(stale))
		return stale

	def snapshot(self, user_id: str) -> Optional[Session]:
		session = self._sessions.get(user_id)
		return copy.deepcopy(session) if session is not None else None

	def restore(self, user_id: str, snapshot: Optional[Session]) -> None:
		"""Put back a snapshot taken with `snapshot`; None removes the session."""
		if snapshot is None:
			self._sessions.pop(user_id, None)
		else:
			self._sessions[user_id] = snapshot

	def discard(self, user_id: str) -> bool:
		"""Forget the user's session; the next `get` starts from scratch."""
		return self._sessions.pop(user_id, None) is not None
