"""Health check endpoints.

Provides:
- Basic health check (GET /health)
- Detailed health check with provider configuration (GET /health/detailed)
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, SecretStr

from voicerelay.api.websocket.voice_stream import voice_sessions
from voicerelay.config import Settings, get_settings

router = APIRouter()

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: str
    checks: dict[str, str]
    version: str


def _configured(secret: SecretStr | None) -> str:
    return "configured" if secret and secret.get_secret_value() else "missing"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Simple status indicating the API is running.
    """
    return HealthResponse(status="healthy")


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> DetailedHealthResponse:
    """Detailed health check including provider status.

    Providers are only checked for configuration; no API calls are made.
    Without a Deepgram key audio cannot be transcribed, so the service
    reports itself degraded.
    """
    checks = {
        "deepgram": _configured(settings.deepgram_api_key),
        "gemini": _configured(settings.gemini_api_key),
        "groq": _configured(settings.groq_api_key),
        "llm_provider": settings.resolved_llm_provider,
        "voice_sessions": str(voice_sessions.active_count),
    }

    status = "healthy" if checks["deepgram"] == "configured" else "degraded"

    return DetailedHealthResponse(status=status, checks=checks, version=VERSION)
