"""Completeness checks for the draft order and the phase derived from them."""

from __future__ import annotations

from typing import Iterable, List

from models.session_models import ConversationPhase, Session
from utils.settings import OrchestratorSettings

FIELD_LABELS = {
    "service": "el servicio a imprimir",
    "measures.width": "el ancho",
    "measures.height": "el alto",
    "computed_area": "las medidas completas (ancho y alto)",
    "quantity": "la cantidad",
    "file_path": "el archivo de diseño",
    "file_analysis": "el análisis del archivo",
    "file_analysis_responded": "la revisión del archivo",
    "file_validation": "la validación del archivo",
}

_PHASE_BY_FIELD = {
    "service": ConversationPhase.AWAITING_SERVICE,
    "measures.width": ConversationPhase.AWAITING_MEASURES,
    "measures.height": ConversationPhase.AWAITING_MEASURES,
    "computed_area": ConversationPhase.AWAITING_MEASURES,
    "quantity": ConversationPhase.AWAITING_QUANTITY,
    "file_path": ConversationPhase.AWAITING_FILE,
    "file_analysis": ConversationPhase.AWAITING_FILE,
    "file_analysis_responded": ConversationPhase.AWAITING_FILE_REVIEW,
    "file_validation": ConversationPhase.AWAITING_FILE_VALIDATION,
}


def missing_fields(session: Session, settings: OrchestratorSettings) -> List[str]:
    """Return the fields still required before the order can be confirmed.

    The order is stable: service, measures (measured categories only),
    quantity, then the file checks.
    """
    draft = session.draft_order
    missing: List[str] = []

    if not draft.service.name:
        missing.append("service")

    if settings.is_measured(draft.service.category):
        if draft.measures.width is None:
            missing.append("measures.width")
        if draft.measures.height is None:
            missing.append("measures.height")
        if draft.computed_area is None:
            missing.append("computed_area")

    quantity = draft.quantity
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        missing.append("quantity")

    if not draft.file_path:
        missing.append("file_path")
    if draft.file_analysis is None:
        missing.append("file_analysis")
    if not draft.file_analysis_responded:
        missing.append("file_analysis_responded")
    if draft.file_validation.is_valid is not True:
        missing.append("file_validation")

    return missing


def is_complete(session: Session, settings: OrchestratorSettings) -> bool:
    return not missing_fields(session, settings)


def current_phase(session: Session, settings: OrchestratorSettings) -> ConversationPhase:
    if session.finalized:
        return ConversationPhase.FINALIZED
    missing = missing_fields(session, settings)
    if not missing:
        return ConversationPhase.AWAITING_CONFIRMATION
    return _PHASE_BY_FIELD[missing[0]]


def describe_missing(fields: Iterable[str]) -> List[str]:
    labels: List[str] = []
    for name in fields:
        label = FIELD_LABELS.get(name, name)
        if label not in labels:
            labels.append(label)
    return labels
