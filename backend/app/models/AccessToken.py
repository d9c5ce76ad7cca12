from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    # aware UTC, stored and read back as UTC by the datetime columns
    return datetime.now(timezone.utc)


# ==========================================
# SQLModel (Database Entity)
# ==========================================
class AccessToken(SQLModel, table=True):
    __tablename__ = "access_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    token_id: str = Field(unique=True, index=True, nullable=False)  # jti claim of the access token
    token_value: str = Field(nullable=False)  # compact JWE, kept for audit and lookup
    refresh_token: str = Field(unique=True, index=True, nullable=False)
    user_id: Optional[int] = Field(default=None, index=True, nullable=True)  # None for client_credentials
    client_id: str = Field(index=True)
    scopes: str = ""  # comma-joined
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)
    revoked: bool = Field(default=False)

    @property
    def scope_list(self) -> list[str]:
        return [s for s in self.scopes.split(",") if s]


# ==========================================
# Pydantic Models (DTOs)
# ==========================================

# Body of POST /auth/oauth/v2/token-jwe
class TokenRequest(SQLModel):
    grant_type: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    refresh_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scope: Optional[str] = None


class TokenResponse(SQLModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
    scope: str


class ValidationResponse(SQLModel):
    valid: bool
    message: Optional[str] = None


class RevokeResponse(SQLModel):
    message: str
    token_id: str


class LogoutResponse(SQLModel):
    message: str
    user_id: int


# Claim set carried inside the JWE
class TokenClaims(SQLModel):
    sub: str
    iss: str
    aud: str
    iat: int
    nbf: int
    exp: int
    jti: str
    user_id: Optional[int] = None
    username: str
    roles: list[str] = []
    client_id: str
    scopes: list[str] = []

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.iat, tz=timezone.utc)
