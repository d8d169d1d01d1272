import inspect
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.session_dal import SessionDAL
from routes.analysis_route import router as analysis_router
from routes.progress_ws import router as progress_router
from services.analysis.orchestrator import AnalysisOrchestrator
from services.analysis.retry_executor import RetryExecutor
from services.session_store import SessionStore
from services.stages.base import PrimaryAnalysisChain
from services.stages.multi_model import OpenAIMultiModelReview
from services.stages.primary_analysis import OpenAIPrimaryAnalysis, build_primary_chain_models
from services.stages.research import OpenAIResearch
from services.stages.vision import OpenAIVisionDetector
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


def build_orchestrator(client: AsyncOpenAI, settings: Settings, repository=None) -> AnalysisOrchestrator:
    """Wire the OpenAI-backed stages into an orchestrator."""
    primary = PrimaryAnalysisChain(
        [
            OpenAIPrimaryAnalysis(client, model)
            for model in build_primary_chain_models(settings.openai_model, settings.fallback_models)
        ]
    )
    return AnalysisOrchestrator(
        primary,
        repository=repository,
        vision=OpenAIVisionDetector(client, settings.vision_model),
        multi_model=OpenAIMultiModelReview(client),
        research=OpenAIResearch(client, settings.research_model),
        retry_executor=RetryExecutor(settings.retry),
        timeouts=settings.timeouts,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - settings and log level
      - the SQLite database (at DATABASE_DIR/app.db)
      - the OpenAI async client and the stage orchestrator
      - the in-memory session store
    and attach them to `app.state`.
    """
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    app.state.settings = settings

    db_initializer = AsyncDatabaseInitializer(reset=settings.database_reset_on_startup)
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
    app.state.orchestrator = build_orchestrator(openai_client, settings, SessionDAL(db_initializer))
    app.state.session_store = SessionStore(retention_seconds=settings.session_retention_seconds)
    LOGGER.info("Analysis service ready (primary model %s)", settings.openai_model)

    try:
        yield
    finally:
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    result = aclose()
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    LOGGER.warning("Error while closing OpenAI client: %s", exc)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer and OpenAI client presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_openai = (
            hasattr(request.app.state, "openai_client")
            and request.app.state.openai_client is not None
        )
        return {"ok": True, "db_initialized": has_db, "openai_available": has_openai}

    app.include_router(analysis_router)
    app.include_router(progress_router)

    return app


app = create_app()
