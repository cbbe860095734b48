"""Catalog, file analysis, and order sink records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ServiceInfo:
	"""A single catalog row describing a printable service."""

	name: str
	category: str
	type: Optional[str] = None
	price: Optional[float] = None
	available_widths: List[float] = field(default_factory=list)
	available_finishes: Dict[str, bool] = field(default_factory=dict)
	min_dpi: Optional[int] = None
	formats: List[str] = field(default_factory=list)
	file_validation_criteria: Optional[str] = None

	def offered_finishes(self) -> List[str]:
		return [name for name, offered in self.available_finishes.items() if offered]


@dataclass
class FileAnalysis:
	"""Technical facts about an uploaded design file.

	Physical dimensions are expressed in meters and `area` in square meters.
	"""

	format: str
	width: Optional[int] = None
	height: Optional[int] = None
	dpi: Optional[float] = None
	color_space: Optional[str] = None
	physical_width: Optional[float] = None
	physical_height: Optional[float] = None
	area: Optional[float] = None
	pages: Optional[int] = None
	file_size: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class OrderRecord:
	"""Row written to the order sink when a draft is confirmed."""

	date: str
	phone: str
	name: str
	details: str
	observations: str
	file_path: Optional[str] = None
	status: str = "Nuevo pedido"
	id: Optional[int] = None
	created_at: Optional[int] = None


@dataclass
class SaveResult:
	success: bool
	row_index: Optional[int] = None
	error: Optional[str] = None
