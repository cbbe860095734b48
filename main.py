import asyncio
import inspect
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.attachment_store import AttachmentStore
from routes.catalog_route import router as catalog_router
from routes.chat_ws import router as chat_router
from routes.session_route import router as session_router
from services.catalog.catalog_service import CatalogError, CatalogService
from services.conversation.orchestrator import ConversationOrchestrator
from services.conversation.session_store import SessionStore
from services.files.file_analyzer import FileAnalyzer
from services.openai.completion_service import CompletionService
from services.openai.transcription_service import TranscriptionService
from services.transport.ws_transport import WebSocketTransport
from utils.database_init import AsyncDatabaseInitializer
from utils.session_cleaner import SessionCleaner
from utils.settings import OrchestratorSettings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (catalog cache and orders, at DATABASE_DIR/app.db)
      - the OpenAI async client
      - the catalog, the session store and the conversation orchestrator
      - background catalog refresh and idle-session cleanup
    and attach them to `app.state`.
    """
    settings = OrchestratorSettings.from_env()
    app.state.settings = settings

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client

    catalog = CatalogService(db_initializer, settings.catalog_csv_path, settings.additional_info_path)
    try:
        await catalog.refresh()
    except CatalogError:
        LOGGER.warning("Starting with an empty catalog; the next refresh will retry")
    app.state.catalog = catalog

    transport = WebSocketTransport()
    orchestrator = ConversationOrchestrator(
        store=SessionStore(catalog, settings.history_word_limit),
        catalog=catalog,
        completion=CompletionService(openai_client, settings),
        transport=transport,
        settings=settings,
        file_analyzer=FileAnalyzer(),
    )
    app.state.transport = transport
    app.state.orchestrator = orchestrator
    app.state.transcriber = TranscriptionService(openai_client, settings.transcribe_model)
    app.state.attachments = AttachmentStore(settings.upload_dir)

    cleaner = SessionCleaner(orchestrator, settings.session_max_idle_seconds)
    background = [
        asyncio.create_task(catalog.run_periodic_refresh(settings.catalog_refresh_seconds)),
        asyncio.create_task(cleaner.run_periodic_cleanup()),
    ]

    try:
        yield
    finally:
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        await orchestrator.shutdown()

        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    if inspect.iscoroutinefunction(aclose):
                        await aclose()
                    else:
                        result = aclose()
                        if inspect.isawaitable(result):
                            await result
                except Exception as exc:
                    LOGGER.warning("Error while closing the OpenAI client: %s", exc)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Health check reporting the DB initializer, OpenAI client and catalog state.
        """
        state = request.app.state
        has_db = hasattr(state, "db_initializer")
        has_openai = getattr(state, "openai_client", None) is not None
        catalog = getattr(state, "catalog", None)
        orchestrator = getattr(state, "orchestrator", None)
        transport = getattr(state, "transport", None)
        return {
            "ok": True,
            "db_initialized": has_db,
            "openai_available": has_openai,
            "catalog_services": sum(len(items) for items in catalog.get_services().values()) if catalog else 0,
            "active_sessions": orchestrator.store.count() if orchestrator else 0,
            "connected_users": len(transport.connected()) if transport else 0,
        }

    # Register application routers
    app.include_router(chat_router)
    app.include_router(session_router)
    app.include_router(catalog_router)

    return app


app = create_app()
