import asyncio
from typing import Callable, List, Optional, Tuple

import pytest

from models.catalog_models import FileAnalysis, ServiceInfo
from models.session_models import Session
from services.catalog.catalog_service import CatalogService
from services.conversation.blacklist import Blacklist
from services.conversation.orchestrator import ConversationOrchestrator
from services.conversation.session_store import SessionStore
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import OrchestratorSettings

SERVICES = [
    ServiceInfo(
        name="Tela PVC 13 oz",
        category="Telas PVC",
        type="Gran formato",
        price=5000,
        available_widths=[0.9, 1.2, 1.5, 3.2],
        available_finishes={"sellado": True, "ojetillos": True, "bolsillo": False},
        min_dpi=72,
        formats=["pdf", "jpg"],
        file_validation_criteria="Mínimo 72 dpi a tamaño real",
    ),
    ServiceInfo(
        name="Adhesivo Vinilo",
        category="Adhesivos",
        type="Gran formato",
        price=7000,
        available_widths=[1.0, 1.5],
        available_finishes={"sellado": False, "ojetillos": False, "bolsillo": False},
    ),
    ServiceInfo(
        name="Tarjetas de Presentación",
        category="Tarjetas",
        type="Digital",
        price=15000,
    ),
]


class FakeCompletion:
    """Scripted completion service.

    Each call consumes the next scripted item: a string is returned, an
    exception instance is raised, a callable is invoked with the call args.
    """

    def __init__(self, replies=None) -> None:
        self.replies = list(replies or [])
        self.calls: List[Tuple[str, List[dict], Optional[str]]] = []

    async def complete(self, system_prompt, history, extra_instruction=None) -> str:
        self.calls.append((system_prompt, [dict(turn) for turn in history], extra_instruction))
        if not self.replies:
            return "¿En qué más te puedo ayudar? 😊"
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(system_prompt, history, extra_instruction)
        return item


class RecordingTransport:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    async def send(self, user_id: str, text: str) -> None:
        self.sent.append((user_id, text))

    def texts(self, user_id: str) -> List[str]:
        return [text for uid, text in self.sent if uid == user_id]


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def settings() -> OrchestratorSettings:
    return OrchestratorSettings(
        message_gap_seconds=0.05,
        idle_warning_seconds=30,
        idle_timeout_seconds=60,
        promo_message=None,
        welcome_messages=("¡Hola! Bienvenido a la imprenta.",),
    )


@pytest.fixture
def catalog(tmp_path) -> CatalogService:
    service = CatalogService(AsyncDatabaseInitializer(tmp_path))
    service.load(SERVICES, {"Horario": "Lunes a viernes 9:00 a 18:00", "Pago": "Transferencia"})
    return service


@pytest.fixture
def store(catalog) -> SessionStore:
    return SessionStore(catalog, history_word_limit=1500)


@pytest.fixture
def make_orchestrator(catalog, settings) -> Callable[..., Tuple[ConversationOrchestrator, RecordingTransport]]:
    def _make(completion: FakeCompletion, settings_override: Optional[OrchestratorSettings] = None,
              blacklist: Optional[Blacklist] = None):
        transport = RecordingTransport()
        active = settings_override or settings
        orchestrator = ConversationOrchestrator(
            store=SessionStore(catalog, active.history_word_limit),
            catalog=catalog,
            completion=completion,
            transport=transport,
            settings=active,
            blacklist=blacklist,
        )
        return orchestrator, transport

    return _make


def fill_complete_draft(session: Session, service: str = "Tarjetas de Presentación", category: str = "Tarjetas") -> None:
    """Give `session` a draft that passes validation (non-measured service)."""
    draft = session.draft_order
    draft.service.name = service
    draft.service.category = category
    draft.quantity = 100
    draft.file_path = "/tmp/diseno.pdf"
    draft.file_analysis = FileAnalysis(format="pdf", width=595, height=842, dpi=72.0)
    draft.file_analysis_responded = True
    draft.file_validation.is_valid = True


def run(coro):
    return asyncio.run(coro)
