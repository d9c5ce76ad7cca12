import re
import uuid
from datetime import timedelta
from typing import Callable, Iterable, Optional

from ..core.errors import (
    AccountDisabled,
    InvalidClientCredentials,
    InvalidCredentials,
    InvalidRefreshToken,
    InvalidRequest,
    RefreshTokenRevoked,
    UnsupportedGrantType,
    UserNotFound,
)
from ..core.jwe import JweCodec
from ..core.logging import get_logger
from ..core.security import verify_password
from ..models.AccessToken import AccessToken, TokenRequest, TokenResponse, utcnow
from ..models.User import User
from ..tokens.repository import AccessTokenRepository
from ..users.repository import UserRepository

logger = get_logger(__name__)

ACCESS_TOKEN_VALIDITY_SECONDS = 3600
DEFAULT_SCOPES = ["read"]
CLIENT_ROLE = "API_CLIENT"

_SCOPE_SEPARATORS = re.compile(r"[\s,]+")


def parse_scopes(scope: Optional[str]) -> list[str]:
    """Split a space or comma separated scope string. Blank means ``read``."""
    if scope is None or not scope.strip():
        return list(DEFAULT_SCOPES)
    return [s for s in _SCOPE_SEPARATORS.split(scope) if s]


class GrantDispatcher:
    """Issues, refreshes and revokes tokens for the supported grant types."""

    def __init__(
        self,
        tokens: AccessTokenRepository,
        users: UserRepository,
        codec: JweCodec,
        service_clients: Iterable[str] = ("oauth2-client", "api-client"),
        default_client_id: str = "default-client",
        password_verifier: Callable[[str, str], bool] = verify_password,
    ):
        self.tokens = tokens
        self.users = users
        self.codec = codec
        self.service_clients = frozenset(service_clients)
        self.default_client_id = default_client_id
        self.verify_password = password_verifier
        self._handlers = {
            "password": self._password_grant,
            "refresh_token": self._refresh_token_grant,
            "client_credentials": self._client_credentials_grant,
        }

    def issue_token(self, request: TokenRequest) -> TokenResponse:
        grant_type = (request.grant_type or "").strip()
        if not grant_type:
            raise InvalidRequest("Grant type is required")
        logger.info("Generating token", grant_type=grant_type)

        handler = self._handlers.get(grant_type.lower())
        if handler is None:
            raise UnsupportedGrantType(f"Unsupported grant type: {grant_type}")
        return handler(request)

    def _password_grant(self, request: TokenRequest) -> TokenResponse:
        if not request.username or not request.password:
            raise InvalidRequest("Username and password are required for password grant")

        user = self.users.find_by_login(request.username)
        # Same error for unknown login and wrong password
        if user is None or not self.verify_password(request.password, user.password_hash):
            raise InvalidCredentials()
        if not user.active:
            raise AccountDisabled()

        return self._issue_for_user(user, request.client_id, parse_scopes(request.scope))

    def _refresh_token_grant(self, request: TokenRequest) -> TokenResponse:
        if not request.refresh_token:
            raise InvalidRequest("Refresh token is required")

        existing = self.tokens.find_by_refresh_token(request.refresh_token)
        if existing is None:
            raise InvalidRefreshToken()
        if existing.revoked:
            raise RefreshTokenRevoked()

        user = self.users.find_by_id(existing.user_id) if existing.user_id is not None else None
        if user is None:
            raise UserNotFound()
        if not user.active:
            raise AccountDisabled()

        # Single use: whoever revokes the old record first gets the new token
        if not self.tokens.claim(existing):
            raise InvalidRefreshToken()

        return self._issue_for_user(user, existing.client_id, parse_scopes(existing.scopes))

    def _client_credentials_grant(self, request: TokenRequest) -> TokenResponse:
        if not request.client_id or not request.client_secret:
            raise InvalidRequest("Client credentials are required")

        # TODO: verify client_secret against hashed secrets once a client registry exists
        if request.client_id not in self.service_clients:
            raise InvalidClientCredentials()

        return self._issue(
            user_id=None,
            username=request.client_id,
            roles=[CLIENT_ROLE],
            client_id=request.client_id,
            scopes=parse_scopes(request.scope),
        )

    def _issue_for_user(self, user: User, client_id: Optional[str], scopes: list[str]) -> TokenResponse:
        response = self._issue(
            user_id=user.id,
            username=user.login,
            roles=user.role_names,
            client_id=client_id or self.default_client_id,
            scopes=scopes,
        )
        logger.info("Token generated", user_id=user.id, login=user.login)
        return response

    def _issue(
        self,
        user_id: Optional[int],
        username: str,
        roles: list[str],
        client_id: str,
        scopes: list[str],
    ) -> TokenResponse:
        token_id = str(uuid.uuid4())
        refresh_token = self.codec.generate_refresh_token()
        expires_at = utcnow() + timedelta(seconds=ACCESS_TOKEN_VALIDITY_SECONDS)

        access_token = self.codec.mint(
            subject=username,
            audience=client_id,
            user_id=user_id,
            username=username,
            roles=roles,
            client_id=client_id,
            scopes=scopes,
            expires_at=expires_at,
            token_id=token_id,
        )

        self.tokens.save(
            AccessToken(
                token_id=token_id,
                token_value=access_token,
                refresh_token=refresh_token,
                user_id=user_id,
                client_id=client_id,
                scopes=",".join(scopes),
                expires_at=expires_at,
                revoked=False,
            )
        )

        return TokenResponse(
            access_token=access_token,
            token_type="Bearer",
            expires_in=ACCESS_TOKEN_VALIDITY_SECONDS,
            refresh_token=refresh_token,
            scope=" ".join(scopes),
        )

    def validate_token(self, token: str) -> bool:
        return self.codec.is_valid(token)

    def revoke_token(self, token_id: str) -> None:
        self.tokens.revoke(token_id)
        logger.info("Token revoked", token_id=token_id)

    def revoke_all_user_tokens(self, user_id: int) -> None:
        count = self.tokens.revoke_all_for_user(user_id)
        logger.info("All tokens revoked for user", user_id=user_id, count=count)
