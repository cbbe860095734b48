"""Embedded command records and the result of applying them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CommandKind(str, Enum):
	"""Catalog of directives the completion service may embed in its replies."""

	SELECT_SERVICE = "select-service"
	SET_MEASURES = "set-measures"
	SET_QUANTITY = "set-quantity"
	SET_FINISHES = "set-finishes"
	SET_OBSERVATIONS = "set-observations"
	CONFIRM_ORDER = "confirm-order"
	LIST_SERVICES = "list-services"
	ADDITIONAL_INFO = "additional-info"
	VALIDATE_FILE_RESULT = "validate-file-result"
	SERVICE_NOT_FOUND = "service-not-found"
	MISSING_INFO = "missing-info"
	REQUEST_HUMAN = "request-human"
	REPORT_ABUSE = "report-abuse"
	UNKNOWN = "unknown"


TERMINAL_KINDS = frozenset({CommandKind.CONFIRM_ORDER, CommandKind.REQUEST_HUMAN, CommandKind.REPORT_ABUSE})


@dataclass
class Command:
	"""A parsed directive: `raw_name` keeps what the model actually wrote."""

	kind: CommandKind
	payload: Dict[str, Any] = field(default_factory=dict)
	raw_name: Optional[str] = None

	@property
	def is_terminal(self) -> bool:
		return self.kind in TERMINAL_KINDS


@dataclass
class MutationResult:
	order_updated: bool = False
	data: Optional[Dict[str, Any]] = None
	error: Optional[str] = None

	@property
	def ok(self) -> bool:
		return self.error is None
