from typing import Any, Optional

from pydantic import BaseModel


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class ApiResponse(BaseModel):
    """Envelope printed by the CLI commands."""

    message: str
    status: int
    data: Any = None

    @classmethod
    def error(cls, message: str, status: int) -> "ApiResponse":
        return cls(message=message, status=status, data=None)


class ClientError(Exception):
    """Raised when the token server cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
