from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError
from sqlmodel import Session

from ..core.database import get_session
from ..core.errors import InvalidRequest, RateLimitExceeded, TokenError
from ..core.jwe import JweCodec, get_codec
from ..core.logging import get_logger
from ..core.ratelimit import RateLimiter, resolve_client_identifier
from ..core.settings import settings
from ..models.AccessToken import TokenClaims, TokenRequest
from ..tokens.repository import AccessTokenRepository
from ..users.repository import UserRepository
from .service import GrantDispatcher

logger = get_logger(__name__)

# OAuth2 scheme (for extracting token from header)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/oauth/v2/token-jwe")

token_rate_limiter = RateLimiter(
    rate=settings.RATE_LIMIT_REQUESTS_PER_SECOND,
    capacity=settings.RATE_LIMIT_BURST_CAPACITY,
)


def get_rate_limiter() -> RateLimiter:
    return token_rate_limiter


def get_dispatcher(
    session: Session = Depends(get_session),
    codec: JweCodec = Depends(get_codec),
) -> GrantDispatcher:
    return GrantDispatcher(
        tokens=AccessTokenRepository(session),
        users=UserRepository(session),
        codec=codec,
        service_clients=settings.SERVICE_CLIENTS,
        default_client_id=settings.DEFAULT_CLIENT_ID,
    )


async def rate_limited_token_request(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> TokenRequest:
    """Admit the token request through the caller's bucket, then parse the body.

    Admission comes first so malformed requests are metered like any other.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    client_id = payload.get("client_id") if isinstance(payload, dict) else None
    identifier = resolve_client_identifier(request, client_id if isinstance(client_id, str) else None)
    if not limiter.admit(identifier):
        raise RateLimitExceeded(identifier)

    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        return TokenRequest.model_validate(payload)
    except ValidationError as e:
        logger.debug("Rejected token request body", errors=e.error_count())
        raise InvalidRequest("Malformed token request")


async def get_current_claims(
    token: Annotated[str, Depends(oauth2_scheme)],
    codec: JweCodec = Depends(get_codec),
    session: Session = Depends(get_session),
) -> TokenClaims:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = codec.parse_and_validate(token)
    except TokenError as e:
        logger.debug("Rejected bearer token", reason=str(e))
        raise credentials_exception

    if settings.ENFORCE_REVOCATION_ON_RESOURCES:
        if AccessTokenRepository(session).find_by_token_id(claims.jti) is None:
            logger.info("Rejected revoked bearer token", token_id=claims.jti)
            raise credentials_exception
    return claims


def require_scope(scope: str):
    async def check_scope(claims: Annotated[TokenClaims, Depends(get_current_claims)]) -> TokenClaims:
        if scope not in claims.scopes:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing required scope: {scope}"
            )
        return claims

    return check_scope


def require_role(role: str):
    async def check_role(claims: Annotated[TokenClaims, Depends(get_current_claims)]) -> TokenClaims:
        if role not in claims.roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Not enough privileges"
            )
        return claims

    return check_role
