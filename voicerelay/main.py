"""FastAPI application entry point.

VoiceRelay - authenticated voice assistant relay (speech → text → reply).
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from voicerelay.api.deps import close_services, get_llm_service, get_stt_service
from voicerelay.api.routes import calls, chat, health, metrics, voice
from voicerelay.api.websocket.voice_stream import voice_sessions, voice_stream_endpoint
from voicerelay.config import Settings, get_settings
from voicerelay.core.history import history_registry
from voicerelay.logging_config import get_logger, setup_logging
from voicerelay.services.llm.protocol import LLMService
from voicerelay.services.stt.protocol import STTService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging
    - Size conversation histories

    Shutdown:
    - Close active voice sessions
    - Close cached provider clients
    """
    settings: Settings = app.state.settings

    # Startup
    setup_logging(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.is_production,
        json_logs=settings.log_json,
    )
    history_registry.configure(settings.history_max_messages)
    logger.info(f"LLM provider: {settings.resolved_llm_provider}")

    yield

    # Shutdown
    await voice_sessions.close_all()
    await close_services()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="VoiceRelay API",
        description="Voice assistant relay: speech to text to assistant reply",
        version=health.VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    # Request/response voice routes
    app.include_router(voice.router, prefix="/api", tags=["Voice"])

    # Text chat routes
    app.include_router(chat.router, prefix="/api", tags=["Chat"])

    # Call sessions
    app.include_router(calls.router, prefix="/api", tags=["Calls"])

    # WebSocket endpoint for the voice channel
    @app.websocket("/ws/voice")
    async def voice_ws(
        websocket: WebSocket,
        stt: STTService = Depends(get_stt_service),  # noqa: B008
        llm: LLMService = Depends(get_llm_service),  # noqa: B008
        ws_settings: Settings = Depends(get_settings),  # noqa: B008
    ):
        """Bidirectional voice channel."""
        await voice_stream_endpoint(websocket, stt=stt, llm=llm, settings=ws_settings)

    return app


# Application instance
app = create_app()
