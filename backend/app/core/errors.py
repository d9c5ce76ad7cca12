"""
Error taxonomy for token issuance and validation.
"""

from typing import Optional

from pydantic import BaseModel

INVALID_REQUEST = "invalid_request"
SERVER_ERROR = "server_error"
RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


class ErrorResponse(BaseModel):
    """Wire format of a failed token endpoint call."""

    error: str
    error_description: str


class OAuth2Error(Exception):
    """Base exception for grant handling.

    ``code`` is stable and machine readable, ``error`` is what goes on the
    wire. Every grant failure except ``ServerError`` is reported to clients as
    ``invalid_request``.
    """

    code: str = "invalid_request"
    error: str = INVALID_REQUEST
    default_description: str = "Invalid request"

    def __init__(self, description: Optional[str] = None):
        self.description = description or self.default_description
        super().__init__(self.description)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.error, error_description=self.description)


class InvalidRequest(OAuth2Error):
    code = "invalid_request"


class InvalidCredentials(OAuth2Error):
    code = "invalid_credentials"
    default_description = "Invalid credentials"


class InvalidClientCredentials(OAuth2Error):
    code = "invalid_client_credentials"
    default_description = "Invalid client credentials"


class AccountDisabled(OAuth2Error):
    code = "account_disabled"
    default_description = "User account is disabled"


class UnsupportedGrantType(OAuth2Error):
    code = "unsupported_grant_type"
    default_description = "Unsupported grant type"


class InvalidRefreshToken(OAuth2Error):
    code = "invalid_refresh_token"
    default_description = "Invalid refresh token"


class RefreshTokenRevoked(OAuth2Error):
    code = "refresh_token_revoked"
    default_description = "Refresh token has been revoked"


class UserNotFound(OAuth2Error):
    code = "user_not_found"
    default_description = "User not found"


class ServerError(OAuth2Error):
    code = "server_error"
    error = SERVER_ERROR
    default_description = "Internal server error"


# Codec errors. These never cross the public validation boundary.

class ConfigurationError(Exception):
    """Raised at startup when key material is unusable."""


class TokenError(Exception):
    """Base class for token decoding failures."""


class InvalidToken(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class TokenNotYetValid(TokenError):
    pass


class RateLimitExceeded(Exception):
    """The caller's bucket for the token endpoint is empty."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Rate limit exceeded for {identifier}")

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=RATE_LIMIT_EXCEEDED,
            error_description="Too many requests. Please try again later.",
        )
