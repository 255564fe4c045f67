"""Bearer-token authentication for HTTP routes and the voice channel.

Tokens are issued elsewhere; this module only verifies them with the
shared secret and extracts the caller identity.
"""

from typing import Annotated, Any

import jwt
from fastapi import Depends, Header, HTTPException, WebSocket, status
from pydantic import BaseModel, ValidationError

from voicerelay.config import Settings, get_settings
from voicerelay.exceptions import VoiceRelayError
from voicerelay.logging_config import get_logger

logger: Any = get_logger(__name__)

BEARER_SCHEME = "bearer"


class ChannelAuthError(VoiceRelayError):
    """Raised when a credential is missing or invalid."""

    pass


# =============================================================================
# Token Models
# =============================================================================


class TokenPayload(BaseModel):
    """Validated JWT token payload."""

    sub: str  # Subject (user ID)
    email: str | None = None
    name: str | None = None
    exp: float | None = None
    iat: float | None = None


# =============================================================================
# Token Validation
# =============================================================================


def strip_bearer(token: str) -> str:
    """Remove the "Bearer" scheme if present."""
    scheme, _, credentials = token.strip().partition(" ")
    if scheme.lower() == BEARER_SCHEME:
        return credentials.strip()
    return token.strip()


def decode_token(token: str | None, settings: Settings | None = None) -> TokenPayload:
    """Decode and validate a bearer token.

    Raises:
        ChannelAuthError: Token missing, expired or invalid.
    """
    if not token or not strip_bearer(token):
        raise ChannelAuthError("Authentication token required")

    settings = settings or get_settings()

    try:
        payload = jwt.decode(
            strip_bearer(token),
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise ChannelAuthError("Token has expired") from e
    except jwt.PyJWTError as e:
        raise ChannelAuthError(f"Invalid token: {e}") from e

    # Tokens minted by the account service carry the user id as "id"
    subject = payload.get("sub") or payload.get("id")
    if not subject:
        raise ChannelAuthError("Invalid token: missing subject")

    payload["sub"] = str(subject)
    try:
        return TokenPayload(**payload)
    except ValidationError as e:
        logger.warning(f"Rejected token with malformed claims: {e.error_count()} errors")
        raise ChannelAuthError(f"Invalid token: {e}") from e


def websocket_token(websocket: WebSocket) -> str | None:
    """Read the credential presented at WebSocket handshake.

    Browsers cannot set headers on WebSocket upgrades, so a `token` query
    parameter is accepted as well as the Authorization header.
    """
    return websocket.headers.get("authorization") or websocket.query_params.get("token")


def authenticate_websocket(websocket: WebSocket, settings: Settings | None = None) -> TokenPayload:
    """Validate the handshake credential of a voice channel connection.

    Raises:
        ChannelAuthError: Credential missing or invalid.
    """
    return decode_token(websocket_token(websocket), settings)


# =============================================================================
# FastAPI Dependencies
# =============================================================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> TokenPayload:
    """Extract and validate JWT token from Authorization header."""
    try:
        return decode_token(authorization, settings)
    except ChannelAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


# Alias for clearer intent in route definitions
RequireAuth = Annotated[TokenPayload, Depends(get_current_user)]
