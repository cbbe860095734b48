"""Outcome of one orchestrated conversational turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.command_models import Command
from models.session_models import ConversationPhase


class TurnStatus(str, Enum):
	SUCCESS = "success"
	PARTIAL = "partial"
	FAILED = "failed"
	IGNORED = "ignored"
	FINALIZED = "finalized"
	TERMINATED = "terminated"


@dataclass
class TurnResult:
	"""Replies to deliver plus what happened to the draft during the turn.

	`partial` marks a turn where a recovery tier answered instead of the
	original assistant text.
	"""

	status: TurnStatus
	replies: List[str] = field(default_factory=list)
	commands: List[Command] = field(default_factory=list)
	phase: Optional[ConversationPhase] = None
	recovery_tier: Optional[int] = None
