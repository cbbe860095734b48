"""Session domain models for conversational print orders."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from models.catalog_models import FileAnalysis


class ConversationPhase(str, Enum):
	"""Conversation phase derived from what the draft order still lacks."""

	AWAITING_SERVICE = "awaiting_service"
	AWAITING_MEASURES = "awaiting_measures"
	AWAITING_QUANTITY = "awaiting_quantity"
	AWAITING_FILE = "awaiting_file"
	AWAITING_FILE_REVIEW = "awaiting_file_review"
	AWAITING_FILE_VALIDATION = "awaiting_file_validation"
	AWAITING_CONFIRMATION = "awaiting_confirmation"
	FINALIZED = "finalized"


@dataclass
class HistoryMessage:
	"""One turn of the rolling conversation sent to the completion service."""

	role: str
	content: str
	created_at: float = field(default_factory=lambda: time.time())

	def word_count(self) -> int:
		return len(self.content.split())


@dataclass
class ServiceSelection:
	"""Chosen catalog service; category and type are backfilled by the store."""

	name: Optional[str] = None
	category: Optional[str] = None
	type: Optional[str] = None


@dataclass
class Measures:
	width: Optional[float] = None
	height: Optional[float] = None


@dataclass
class FileValidation:
	"""Tri-state validation: `is_valid` is None until the file was reviewed."""

	is_valid: Optional[bool] = None
	reason: Optional[str] = None


@dataclass
class DraftOrder:
	"""The in-progress order attached to a session."""

	service: ServiceSelection = field(default_factory=ServiceSelection)
	measures: Measures = field(default_factory=Measures)
	finishes: Dict[str, bool] = field(default_factory=dict)
	quantity: Optional[int] = None
	file_path: Optional[str] = None
	file_analysis: Optional[FileAnalysis] = None
	file_analysis_responded: bool = False
	file_validation: FileValidation = field(default_factory=FileValidation)
	computed_area: Optional[float] = None
	observations: Optional[str] = None
	# Derived from the catalog whenever the service changes.
	available_widths: List[float] = field(default_factory=list)
	available_finishes: Dict[str, bool] = field(default_factory=dict)
	file_validation_criteria: Optional[str] = None

	def to_dict(self) -> Dict[str, object]:
		"""Return a JSON-friendly view used in prompts and management routes."""
		return {
			"service": {
				"name": self.service.name,
				"category": self.service.category,
				"type": self.service.type,
			},
			"measures": {"width": self.measures.width, "height": self.measures.height},
			"finishes": dict(self.finishes),
			"quantity": self.quantity,
			"file_path": self.file_path,
			"file_analysis": self.file_analysis.to_dict() if self.file_analysis else None,
			"file_analysis_responded": self.file_analysis_responded,
			"file_validation": {
				"is_valid": self.file_validation.is_valid,
				"reason": self.file_validation.reason,
			},
			"computed_area": self.computed_area,
			"observations": self.observations,
			"available_widths": list(self.available_widths),
			"available_finishes": dict(self.available_finishes),
		}


@dataclass
class Session:
	"""In-memory conversation state for a single user identity."""

	user_id: str
	history: List[HistoryMessage] = field(default_factory=list)
	draft_order: DraftOrder = field(default_factory=DraftOrder)
	has_interacted: bool = False
	initial_messages_sent: bool = False
	file_upload_attempts: int = 0
	last_interaction: float = field(default_factory=lambda: time.time())
	finalized_at: Optional[float] = None

	@property
	def finalized(self) -> bool:
		return self.finalized_at is not None

	def touch(self) -> None:
		self.last_interaction = time.time()

	def history_word_count(self) -> int:
		return sum(message.word_count() for message in self.history)
