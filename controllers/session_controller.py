"""Session and blacklist management helpers for operators."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import HTTPException, Request

from services.commands import validator
from services.conversation.orchestrator import ConversationOrchestrator


def _orchestrator(request: Request) -> ConversationOrchestrator:
	orchestrator = getattr(request.app.state, "orchestrator", None)
	if orchestrator is None:
		raise HTTPException(status_code=500, detail="Orchestrator unavailable")
	return orchestrator


async def get_session(request: Request, user_id: str) -> Dict[str, Any]:
	"""Return the draft order, phase and counters for a known session."""
	orchestrator = _orchestrator(request)
	if user_id not in orchestrator.store:
		raise HTTPException(status_code=404, detail=f"Session {user_id} not found")
	session = orchestrator.store.get(user_id)
	settings = orchestrator.settings
	return {
		"user_id": user_id,
		"phase": validator.current_phase(session, settings).value,
		"missing_fields": validator.missing_fields(session, settings),
		"draft_order": session.draft_order.to_dict(),
		"history_length": len(session.history),
		"history_words": session.history_word_count(),
		"file_upload_attempts": session.file_upload_attempts,
		"has_interacted": session.has_interacted,
		"finalized_at": session.finalized_at,
		"last_interaction": session.last_interaction,
		"blacklisted": orchestrator.blacklist.contains(user_id),
	}


async def reset_session(request: Request, user_id: str) -> Dict[str, Any]:
	orchestrator = _orchestrator(request)
	await orchestrator.reset(user_id)
	return {"user_id": user_id, "reset": True}


async def list_blacklist(request: Request) -> List[Dict[str, Any]]:
	return _orchestrator(request).blacklist.status()


async def remove_from_blacklist(request: Request, user_id: str) -> Dict[str, Any]:
	"""Lift a blacklist entry early; the session is reset like a natural expiry."""
	orchestrator = _orchestrator(request)
	if not orchestrator.blacklist.contains(user_id):
		raise HTTPException(status_code=404, detail=f"User {user_id} is not blacklisted")
	await orchestrator.reset(user_id)
	return {"user_id": user_id, "removed": True}
