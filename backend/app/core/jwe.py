"""
JWE codec for access tokens.

Claims are signed with HS256 and then encrypted into a compact JWE using
direct key agreement and A256GCM. The encrypted envelope carries the claim
set itself; the signed form is produced alongside it but not nested inside.
"""

import hashlib
import json
import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from jose import jwe, jws
from jose.constants import ALGORITHMS

from .errors import ConfigurationError, InvalidToken, TokenError, TokenExpired, TokenNotYetValid
from .logging import get_logger
from .settings import MIN_KEY_BYTES
from ..models.AccessToken import TokenClaims

logger = get_logger(__name__)

# 32 random bytes, well above the 122 bits of a random UUID
REFRESH_TOKEN_BYTES = 32


def _key_bytes(name: str, key) -> bytes:
    raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    if len(raw) < MIN_KEY_BYTES:
        raise ConfigurationError(
            f"{name} must be at least {MIN_KEY_BYTES} bytes long (got {len(raw)})"
        )
    return raw


def _to_epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class JweCodec:
    def __init__(
        self,
        encryption_key,
        signing_key,
        issuer: str = "oauth2-jwe-server",
        clock: Callable[[], float] = time.time,
    ):
        encryption_key = _key_bytes("encryption key", encryption_key)
        # A256GCM with direct encryption needs exactly 256 bits of key material
        if len(encryption_key) != 32:
            encryption_key = hashlib.sha256(encryption_key).digest()
        self._encryption_key = encryption_key
        self._signing_key = _key_bytes("signing key", signing_key)
        self.issuer = issuer
        self._clock = clock

    def mint(
        self,
        subject: str,
        audience: str,
        user_id: Optional[int],
        username: str,
        roles: Iterable[str],
        client_id: str,
        scopes: Iterable[str],
        expires_at: datetime,
        token_id: Optional[str] = None,
        issuer: Optional[str] = None,
        not_before: Optional[datetime] = None,
    ) -> str:
        """Build, sign and encrypt a claim set. Returns the compact JWE."""
        issued_at = int(self._clock())
        claims = TokenClaims(
            sub=subject,
            iss=issuer or self.issuer,
            aud=audience,
            iat=issued_at,
            nbf=_to_epoch(not_before) if not_before else issued_at,
            exp=_to_epoch(expires_at),
            jti=token_id or str(uuid.uuid4()),
            user_id=user_id,
            username=username,
            roles=list(roles),
            client_id=client_id,
            scopes=list(scopes),
        )
        payload = claims.model_dump()

        # signature is not carried in the envelope
        self._sign(payload)

        token = jwe.encrypt(
            json.dumps(payload).encode("utf-8"),
            self._encryption_key,
            algorithm=ALGORITHMS.DIR,
            encryption=ALGORITHMS.A256GCM,
            cty="JWT",
        )
        return token.decode("ascii") if isinstance(token, bytes) else token

    def _sign(self, payload: dict) -> str:
        return jws.sign(payload, self._signing_key, algorithm=ALGORITHMS.HS256)

    def parse_and_validate(self, token: str) -> TokenClaims:
        """Decrypt a token and check its validity window.

        Raises ``InvalidToken`` when decryption or the authentication tag check
        fails, ``TokenExpired`` or ``TokenNotYetValid`` for the time checks.
        """
        if not token or not isinstance(token, str):
            raise InvalidToken("Token is empty")
        try:
            plaintext = jwe.decrypt(token, self._encryption_key)
        except Exception as e:
            raise InvalidToken(f"Unable to decrypt token: {e}") from e
        if plaintext is None:
            raise InvalidToken("Unable to decrypt token")

        try:
            claims = TokenClaims.model_validate(json.loads(plaintext))
        except ValueError as e:
            raise InvalidToken(f"Malformed claim set: {e}") from e

        now = self._clock()
        if now > claims.exp:
            raise TokenExpired("Token has expired")
        if now < claims.nbf:
            raise TokenNotYetValid("Token not yet valid")
        return claims

    def is_valid(self, token: str) -> bool:
        try:
            self.parse_and_validate(token)
            return True
        except TokenError as e:
            logger.debug("Token validation failed", reason=str(e))
            return False
        except Exception as e:
            logger.debug("Token validation failed", reason=repr(e))
            return False

    def _claims_or_none(self, token: str, field: str) -> Optional[TokenClaims]:
        try:
            return self.parse_and_validate(token)
        except Exception as e:
            logger.debug("Unable to extract claim from token", claim=field, reason=str(e))
            return None

    def extract_username(self, token: str) -> Optional[str]:
        claims = self._claims_or_none(token, "sub")
        return claims.sub if claims else None

    def extract_user_id(self, token: str) -> Optional[int]:
        claims = self._claims_or_none(token, "user_id")
        return claims.user_id if claims else None

    def extract_roles(self, token: str) -> list[str]:
        claims = self._claims_or_none(token, "roles")
        return list(claims.roles) if claims else []

    def extract_scopes(self, token: str) -> list[str]:
        claims = self._claims_or_none(token, "scopes")
        return list(claims.scopes) if claims else []

    def extract_client_id(self, token: str) -> Optional[str]:
        claims = self._claims_or_none(token, "client_id")
        return claims.client_id if claims else None

    def extract_expires_at(self, token: str) -> Optional[datetime]:
        claims = self._claims_or_none(token, "exp")
        return claims.expires_at if claims else None

    @staticmethod
    def generate_refresh_token() -> str:
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


_codec: Optional[JweCodec] = None


def get_codec() -> JweCodec:
    """Process-wide codec built from settings."""
    global _codec
    if _codec is None:
        from .settings import settings

        _codec = JweCodec(
            settings.JWE_ENCRYPTION_KEY,
            settings.JWE_SIGNING_KEY,
            issuer=settings.TOKEN_ISSUER,
        )
    return _codec
