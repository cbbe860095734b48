"""Apply parsed commands to a session's draft order."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
from zoneinfo import ZoneInfo

from models.catalog_models import OrderRecord
from models.command_models import Command, CommandKind, MutationResult
from models.session_models import Session
from services.catalog.catalog_service import CatalogError, CatalogService
from services.commands import validator
from services.conversation import messages
from services.conversation.session_store import SessionStore
from utils.settings import OrchestratorSettings

LOGGER = logging.getLogger(__name__)

FINISH_NAMES = ("sellado", "ojetillos", "bolsillo")
WEEKDAYS_ES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
TRUE_WORDS = {"true", "si", "sí", "yes", "1", "valid", "valido", "válido"}


def censor_phone(phone: str) -> str:
    """Keep the first two and last three characters of a phone number."""
    if len(phone) <= 5:
        return phone
    return phone[:2] + "*" * (len(phone) - 5) + phone[-3:]


def format_order_date(now: datetime) -> str:
    return now.strftime("%d-%m-%Y %H:%Mhrs - ") + WEEKDAYS_ES[now.weekday()]


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        text = value.strip().lower().rstrip("m").strip().replace(",", ".")
        try:
            number = float(text)
        except ValueError:
            return None
        return number if number > 0 else None
    return None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_WORDS
    return bool(value)


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


Handler = Callable[[Session, Command], Awaitable[MutationResult]]


class CommandDispatcher:
    """Route each command kind to a handler that mutates only its own fields.

    Handlers return a MutationResult. `data["reply"]` carries a canned message
    for the customer when the command produces one.
    """

    def __init__(self, store: SessionStore, catalog: CatalogService, settings: OrchestratorSettings) -> None:
        self._store = store
        self._catalog = catalog
        self._settings = settings
        self._handlers: Dict[CommandKind, Handler] = {
            CommandKind.SELECT_SERVICE: self._select_service,
            CommandKind.SET_MEASURES: self._set_measures,
            CommandKind.SET_QUANTITY: self._set_quantity,
            CommandKind.SET_FINISHES: self._set_finishes,
            CommandKind.SET_OBSERVATIONS: self._set_observations,
            CommandKind.CONFIRM_ORDER: self._confirm_order,
            CommandKind.LIST_SERVICES: self._list_services,
            CommandKind.ADDITIONAL_INFO: self._additional_info,
            CommandKind.VALIDATE_FILE_RESULT: self._validate_file_result,
            CommandKind.SERVICE_NOT_FOUND: self._service_not_found,
            CommandKind.MISSING_INFO: self._missing_info,
        }

    async def apply(self, session: Session, command: Command, display_name: Optional[str] = None) -> MutationResult:
        """Apply one command; unknown or transport-level kinds are no-ops."""
        handler = self._handlers.get(command.kind)
        if handler is None:
            if command.kind is CommandKind.UNKNOWN:
                LOGGER.warning("Ignoring unknown command %r for %s", command.raw_name, session.user_id)
            return MutationResult(order_updated=False)
        if command.kind is CommandKind.CONFIRM_ORDER:
            return await self._confirm_order(session, command, display_name)
        LOGGER.info("Applying %s for %s: %s", command.kind.value, session.user_id, command.payload)
        return await handler(session, command)

    async def _select_service(self, session: Session, command: Command) -> MutationResult:
        requested = _first(command.payload, "service", "name", "servicio")
        if not isinstance(requested, str) or not requested.strip():
            return MutationResult(error="invalid_service")
        requested = requested.strip()
        await self._store.update(session.user_id, {"draft_order": {"service": {"name": requested}}})

        current = session.draft_order.service.name or ""
        if current.casefold() != requested.casefold():
            suggestions = self._catalog.find_similar(requested)
            return MutationResult(
                error="service_not_found",
                data={
                    "service": requested,
                    "suggestions": suggestions,
                    "reply": messages.service_not_found(requested, suggestions),
                },
            )
        return MutationResult(order_updated=True, data={"service": current})

    async def _set_measures(self, session: Session, command: Command) -> MutationResult:
        width = _to_float(_first(command.payload, "width", "ancho"))
        height = _to_float(_first(command.payload, "height", "alto", "largo"))
        patch = {key: value for key, value in (("width", width), ("height", height)) if value is not None}
        if not patch:
            return MutationResult(error="invalid_measures")
        await self._store.update(session.user_id, {"draft_order": {"measures": patch}})
        draft = session.draft_order
        data: Dict[str, Any] = {"width": draft.measures.width, "height": draft.measures.height}
        if draft.available_widths and width is not None and width not in draft.available_widths:
            LOGGER.info("Width %s not among available widths %s", width, draft.available_widths)
            data["width_available"] = False
        return MutationResult(order_updated=True, data=data)

    async def _set_quantity(self, session: Session, command: Command) -> MutationResult:
        raw = _first(command.payload, "quantity", "cantidad")
        try:
            quantity = int(str(raw).strip())
        except (TypeError, ValueError):
            return MutationResult(error="invalid_quantity")
        if quantity <= 0:
            return MutationResult(error="invalid_quantity")
        await self._store.update(session.user_id, {"draft_order": {"quantity": quantity}})
        return MutationResult(order_updated=True, data={"quantity": quantity})

    async def _set_finishes(self, session: Session, command: Command) -> MutationResult:
        payload = command.payload
        nested = payload.get("finishes")
        if isinstance(nested, dict):
            requested = {str(k).lower(): _to_bool(v) for k, v in nested.items()}
        elif isinstance(nested, list):
            requested = {str(name).lower(): True for name in nested}
        else:
            requested = {name: _to_bool(payload[name]) for name in FINISH_NAMES if name in payload}
        if not requested:
            return MutationResult(error="invalid_finishes")
        await self._store.update(session.user_id, {"draft_order": {"finishes": requested}})
        return MutationResult(order_updated=True, data={"finishes": dict(session.draft_order.finishes)})

    async def _set_observations(self, session: Session, command: Command) -> MutationResult:
        text = _first(command.payload, "observations", "observaciones", "text", "note")
        if not isinstance(text, str) or not text.strip():
            return MutationResult(error="invalid_observations")
        await self._store.update(session.user_id, {"draft_order": {"observations": text.strip()}})
        return MutationResult(order_updated=True, data={"observations": text.strip()})

    async def _list_services(self, session: Session, command: Command) -> MutationResult:
        return MutationResult(data={"reply": messages.service_list(self._catalog.get_services())})

    async def _additional_info(self, session: Session, command: Command) -> MutationResult:
        topic = _first(command.payload, "topic", "tema", "key") or ""
        return MutationResult(data={"reply": messages.additional_info(self._catalog.additional_info, str(topic))})

    async def _validate_file_result(self, session: Session, command: Command) -> MutationResult:
        raw = _first(command.payload, "is_valid", "isValid", "valid", "valido")
        if raw is None:
            return MutationResult(error="invalid_file_validation")
        is_valid = _to_bool(raw)
        reason = _first(command.payload, "reason", "razon", "motivo")
        patch: Dict[str, Any] = {"draft_order": {"file_validation": {"is_valid": is_valid, "reason": reason}}}
        if not is_valid:
            patch["file_upload_attempts"] = session.file_upload_attempts + 1
        await self._store.update(session.user_id, patch)
        return MutationResult(order_updated=True, data={"is_valid": is_valid, "reason": reason})

    async def _service_not_found(self, session: Session, command: Command) -> MutationResult:
        requested = str(_first(command.payload, "service", "name", "servicio") or "").strip()
        suggestions = self._catalog.find_similar(requested) if requested else []
        return MutationResult(
            data={"service": requested, "suggestions": suggestions,
                  "reply": messages.service_not_found(requested, suggestions) if requested else None}
        )

    async def _missing_info(self, session: Session, command: Command) -> MutationResult:
        missing = validator.missing_fields(session, self._settings)
        return MutationResult(data={"missing_fields": missing, "field": _first(command.payload, "missingField", "field")})

    async def _confirm_order(
        self, session: Session, command: Command, display_name: Optional[str] = None
    ) -> MutationResult:
        if session.finalized:
            return MutationResult(error="already_finalized")
        missing = validator.missing_fields(session, self._settings)
        if missing:
            LOGGER.info("Confirmation refused for %s; missing %s", session.user_id, missing)
            return MutationResult(error="order_incomplete", data={"missing_fields": missing})

        draft = session.draft_order
        record = OrderRecord(
            date=format_order_date(datetime.now(ZoneInfo(self._settings.timezone))),
            phone=censor_phone(session.user_id),
            name=display_name or "Cliente",
            details=messages.order_details(draft),
            observations=draft.observations or "Sin observaciones",
            file_path=draft.file_path,
        )
        result = await self._catalog.save_order(record)
        if not result.success:
            raise CatalogError(f"Order sink rejected the order: {result.error}")

        await self._store.update(session.user_id, {"finalized_at": time.time()})
        LOGGER.info("Order finalized for %s at row %s", session.user_id, result.row_index)
        return MutationResult(
            order_updated=True,
            data={
                "row_index": result.row_index,
                "replies": [messages.order_summary(draft), messages.ORDER_CONFIRMED],
            },
        )
