from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from fastapi import status

from ..core.errors import OAuth2Error, ServerError
from ..core.logging import get_logger
from ..models.AccessToken import (
    LogoutResponse,
    RevokeResponse,
    TokenRequest,
    TokenResponse,
    ValidationResponse,
)
from .dependencies import get_dispatcher, rate_limited_token_request
from .service import GrantDispatcher

logger = get_logger(__name__)

router = APIRouter(prefix="/auth/oauth/v2", tags=["oauth2"])

# Parsed by rate_limited_token_request rather than by a body parameter
TOKEN_REQUEST_BODY = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": TokenRequest.model_json_schema()}},
    }
}


def _server_error() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ServerError().to_response().model_dump(),
    )


@router.post("/token-jwe", response_model=TokenResponse, openapi_extra=TOKEN_REQUEST_BODY)
@router.post("/token", response_model=TokenResponse, include_in_schema=False)
def issue_token(
    token_request: TokenRequest = Depends(rate_limited_token_request),
    dispatcher: GrantDispatcher = Depends(get_dispatcher),
):
    """
    Issue a JWE access token for the password, refresh_token or client_credentials grant.
    """
    logger.info(
        "Token request received",
        grant_type=token_request.grant_type,
        username=token_request.username,
    )
    try:
        return dispatcher.issue_token(token_request)
    except OAuth2Error as e:
        logger.warning("Invalid token request", code=e.code, reason=e.description)
        if isinstance(e, ServerError):
            return _server_error()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=e.to_response().model_dump(),
        )
    except Exception:
        logger.exception("Error generating token")
        return _server_error()


@router.post("/validate", response_model=ValidationResponse)
def validate_token(token: str, dispatcher: GrantDispatcher = Depends(get_dispatcher)):
    """
    Report whether a token decrypts and is inside its validity window.
    """
    valid = dispatcher.validate_token(token)
    message = "Token is valid" if valid else "Token is invalid or expired"
    return ValidationResponse(valid=valid, message=message)


@router.post("/revoke", response_model=RevokeResponse)
def revoke_token(token_id: str, dispatcher: GrantDispatcher = Depends(get_dispatcher)):
    """
    Revoke a single token by its id. Unknown ids succeed silently.
    """
    try:
        dispatcher.revoke_token(token_id)
    except Exception:
        logger.exception("Error revoking token")
        return _server_error()
    return RevokeResponse(message="Token revoked successfully", token_id=token_id)


@router.post("/logout", response_model=LogoutResponse)
def logout(user_id: int, dispatcher: GrantDispatcher = Depends(get_dispatcher)):
    """
    Revoke every token issued to a user.
    """
    try:
        dispatcher.revoke_all_user_tokens(user_id)
    except Exception:
        logger.exception("Error during logout")
        return _server_error()
    return LogoutResponse(message="User logged out successfully", user_id=user_id)
