# client/core/config.py
import os
from dataclasses import dataclass, field

# Base URL of the token server
BASE_URL = os.environ.get("OAUTH2_SERVER_URL", "http://localhost:8000")

TOKEN_ENDPOINT = os.environ.get("OAUTH2_TOKEN_ENDPOINT", "/auth/oauth/v2/token-jwe")
VALIDATE_ENDPOINT = os.environ.get("OAUTH2_VALIDATE_ENDPOINT", "/auth/oauth/v2/validate")
PROTECTED_API_BASE = os.environ.get("OAUTH2_PROTECTED_API_BASE", "/api/v1/protected")

# Credentials used for the password grant
CLIENT_ID = os.environ.get("OAUTH2_CLIENT_ID", "oauth2-client")
CLIENT_SECRET = os.environ.get("OAUTH2_CLIENT_SECRET", "")
USERNAME = os.environ.get("OAUTH2_USERNAME", "admin")
PASSWORD = os.environ.get("OAUTH2_PASSWORD", "")
SCOPES = os.environ.get("OAUTH2_SCOPES", "read write")

# Seconds shaved off expires_in so a token is renewed before the server rejects it
EXPIRY_BUFFER_SECONDS = 60

REQUEST_TIMEOUT = float(os.environ.get("OAUTH2_REQUEST_TIMEOUT", "10"))


@dataclass
class ClientConfig:
    base_url: str = BASE_URL
    token_endpoint: str = TOKEN_ENDPOINT
    validate_endpoint: str = VALIDATE_ENDPOINT
    protected_api_base: str = PROTECTED_API_BASE
    client_id: str = CLIENT_ID
    client_secret: str = CLIENT_SECRET
    username: str = USERNAME
    password: str = PASSWORD
    scopes: str = SCOPES
    timeout: float = REQUEST_TIMEOUT
    expiry_buffer: int = EXPIRY_BUFFER_SECONDS
    extra_headers: dict = field(default_factory=dict)
