from typing import Any, Optional

import structlog

from .api import api_authenticated_request, api_request_token, api_validate_token
from .config import ClientConfig
from .token_cache import TokenCache

logger = structlog.get_logger(__name__)


class OAuth2ClientService:
    """
    Obtains tokens with the password grant and relays calls to protected resources.
    """

    def __init__(self, config: Optional[ClientConfig] = None, cache: Optional[TokenCache] = None):
        self.config = config or ClientConfig()
        self.cache = cache or TokenCache(
            lambda: api_request_token(self.config),
            expiry_buffer=self.config.expiry_buffer,
        )

    def get_access_token(self) -> str:
        return self.cache.get_access_token()

    def validate_token(self, token: str) -> bool:
        return api_validate_token(self.config, token)

    def make_authenticated_request(self, endpoint: str, method: str = "GET", body: Optional[Any] = None) -> Any:
        return api_authenticated_request(self.config, self.get_access_token(), method, endpoint, body)

    def get_user_profile(self) -> dict:
        return self.make_authenticated_request("/profile")

    def get_protected_data(self) -> dict:
        return self.make_authenticated_request("/data")

    def create_data(self, data: dict) -> dict:
        return self.make_authenticated_request("/data", "POST", data)

    def has_valid_token(self) -> bool:
        return self.cache.has_valid_token()

    def token_info(self) -> dict:
        current = self.cache.current_token() if self.cache.has_valid_token() else None
        access_token = current.access_token if current else None
        return {
            "has_token": access_token is not None,
            "is_valid": access_token is not None,
            "token_length": len(access_token) if access_token else 0,
            "token_preview": f"{access_token[:50]}..." if access_token else None,
        }

    def clear_token(self) -> None:
        self.cache.clear()
