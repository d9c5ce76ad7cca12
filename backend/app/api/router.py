import time
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from ..auth.dependencies import require_role, require_scope
from ..core.database import get_session
from ..core.settings import settings
from ..models.AccessToken import TokenClaims
from ..models.User import UserResponse
from ..users.repository import UserRepository

router = APIRouter(prefix="/api/v1", tags=["api"])


def _now_millis() -> int:
    return int(time.time() * 1000)


@router.get("/public/health")
def health():
    return {"status": "UP", "timestamp": _now_millis(), "service": settings.PROJECT_NAME}


@router.get("/protected/profile")
def get_profile(claims: Annotated[TokenClaims, Depends(require_scope("read"))]):
    """
    Identity carried by the bearer token.
    """
    return {
        "user_id": claims.user_id,
        "username": claims.sub,
        "roles": claims.roles,
        "scopes": claims.scopes,
    }


@router.get("/protected/data")
def get_data(claims: Annotated[TokenClaims, Depends(require_scope("read"))]):
    return {
        "message": "This is protected data",
        "timestamp": _now_millis(),
        "data": ["item1", "item2", "item3"],
    }


@router.post("/protected/data")
def create_data(
    claims: Annotated[TokenClaims, Depends(require_scope("write"))],
    request_data: Annotated[dict[str, Any], Body()],
):
    # Free-form payload, echoed back
    return {
        "message": "Data created successfully",
        "timestamp": _now_millis(),
        "created_data": request_data,
    }


@router.get("/admin/users")
def get_users(
    claims: Annotated[TokenClaims, Depends(require_role("ADMIN"))],
    session: Session = Depends(get_session),
):
    """
    List directory users (ADMIN role only).
    """
    users = UserRepository(session).find_all()
    return {
        "message": "Admin endpoint - users list",
        "users": [
            UserResponse(
                id=user.id,
                name=user.name,
                login=user.login,
                email=user.email,
                active=user.active,
                roles=user.role_names,
            )
            for user in users
        ],
    }
