from typing import Any, Optional

import requests
import structlog

from .config import ClientConfig
from .models import ClientError, TokenResponse

logger = structlog.get_logger(__name__)


def _raise_for_status(resp: requests.Response, what: str) -> None:
    if resp.status_code >= 400:
        logger.error("HTTP error", what=what, status=resp.status_code, body=resp.text[:500])
        raise ClientError(f"{what} failed: HTTP {resp.status_code}", resp.status_code, resp.text)


def api_request_token(config: ClientConfig) -> TokenResponse:
    """
    Requests a new token from the server using the password grant.
    """
    url = f"{config.base_url}{config.token_endpoint}"
    data = {
        "grant_type": "password",
        "username": config.username,
        "password": config.password,
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "scope": config.scopes,
    }
    logger.info("Requesting token", url=url)
    try:
        resp = requests.post(url, json=data, headers={"Accept": "application/json"}, timeout=config.timeout)
    except requests.RequestException as e:
        raise ClientError(f"Failed to obtain access token: {e}") from e
    _raise_for_status(resp, "Token request")
    return TokenResponse.model_validate(resp.json())


def api_validate_token(config: ClientConfig, token: str) -> bool:
    """
    Asks the server whether a token is valid. Any failure counts as invalid.
    """
    url = f"{config.base_url}{config.validate_endpoint}"
    try:
        resp = requests.post(url, params={"token": token}, timeout=config.timeout)
    except requests.RequestException as e:
        logger.error("Error validating token", error=str(e))
        return False
    if resp.status_code != 200:
        logger.error("HTTP error validating token", status=resp.status_code)
        return False
    try:
        body = resp.json()
    except ValueError:
        logger.error("Validation response is not JSON")
        return False
    return isinstance(body, dict) and body.get("valid") is True


def api_authenticated_request(
    config: ClientConfig,
    token: str,
    method: str,
    endpoint: str,
    body: Optional[Any] = None,
) -> Any:
    """
    Calls a protected endpoint with the bearer token and returns the decoded JSON body.
    """
    url = f"{config.base_url}{config.protected_api_base}{endpoint}"
    headers = {"Authorization": f"Bearer {token}", "Accept": "application/json", **config.extra_headers}
    logger.info("Making authenticated request", method=method, url=url)
    try:
        resp = requests.request(method, url, json=body, headers=headers, timeout=config.timeout)
    except requests.RequestException as e:
        raise ClientError(f"Failed to make authenticated request: {e}") from e
    _raise_for_status(resp, f"{method} {endpoint}")
    return resp.json()
