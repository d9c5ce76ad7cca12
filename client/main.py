# client/main.py
import json
from typing import Optional

import typer

from client.core.models import ApiResponse, ClientError
from client.core.service import OAuth2ClientService

app = typer.Typer(help="Client for the OAuth2 JWE token server")

_service: Optional[OAuth2ClientService] = None


def get_service() -> OAuth2ClientService:
    global _service
    if _service is None:
        _service = OAuth2ClientService()
    return _service


def _echo(response: ApiResponse) -> None:
    typer.echo(json.dumps(response.model_dump(), indent=2))


def _fail(message: str) -> None:
    _echo(ApiResponse.error(message, 500))
    raise typer.Exit(code=1)


@app.command("hello")
def hello():
    """
    Authenticate against the server and validate the obtained token.
    """
    service = get_service()
    try:
        token = service.get_access_token()
    except ClientError as e:
        _fail(f"Authentication failed: {e}")

    if not service.validate_token(token):
        _echo(ApiResponse.error("Token validation failed", 401))
        raise typer.Exit(code=1)
    _echo(ApiResponse(message="autenticado", status=200, data="hello"))


@app.command("profile")
def profile():
    """
    Show the profile behind the current token.
    """
    try:
        data = get_service().get_user_profile()
    except ClientError as e:
        _fail(f"Failed to get profile: {e}")
    _echo(ApiResponse(message="autenticado", status=200, data=data))


@app.command("data")
def data():
    """
    Fetch protected data (requires the read scope).
    """
    try:
        result = get_service().get_protected_data()
    except ClientError as e:
        _fail(f"Failed to get data: {e}")
    _echo(ApiResponse(message="autenticado", status=200, data=result))


@app.command("create-data")
def create_data(payload: str = typer.Argument(..., help="JSON object to send")):
    """
    Post a JSON payload to the protected data endpoint (requires the write scope).
    """
    try:
        body = json.loads(payload)
    except json.JSONDecodeError:
        typer.echo("Payload must be valid JSON.")
        raise typer.Exit(code=1)
    if not isinstance(body, dict):
        typer.echo("Payload must be a JSON object.")
        raise typer.Exit(code=1)

    try:
        result = get_service().create_data(body)
    except ClientError as e:
        _fail(f"Failed to create data: {e}")
    _echo(ApiResponse(message="autenticado", status=200, data=result))


@app.command("validate")
def validate(token: str = typer.Argument(..., help="Access token to check")):
    """
    Ask the server whether a token is valid.
    """
    valid = get_service().validate_token(token)
    _echo(ApiResponse(message="Token is valid" if valid else "Token is invalid or expired", status=200, data={"valid": valid}))


@app.command("token-info")
def token_info():
    """
    Obtain a token and describe it.
    """
    service = get_service()
    try:
        service.get_access_token()
    except ClientError as e:
        _fail(f"Failed to get token info: {e}")
    _echo(ApiResponse(message="Token information", status=200, data=service.token_info()))


if __name__ == "__main__":
    app()
