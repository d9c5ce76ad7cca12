from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlmodel import Session, SQLModel

from backend.app.core.database import build_engine
from backend.app.core.jwe import JweCodec
from backend.app.models.AccessToken import AccessToken, utcnow
from backend.app.models.User import Role, User

ENCRYPTION_KEY = "unit-test-encryption-key-32bytes"  # exactly 32 bytes
SIGNING_KEY = "unit-test-signing-key-at-least-32-bytes"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_engine():
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    return engine


def make_codec(clock=None) -> JweCodec:
    if clock is None:
        return JweCodec(ENCRYPTION_KEY, SIGNING_KEY)
    return JweCodec(ENCRYPTION_KEY, SIGNING_KEY, clock=clock)


def future(seconds: int = 3600) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def plain_verifier(plain: str, hashed: str) -> bool:
    return hashed == f"hashed:{plain}"


def add_user(
    session: Session,
    login: str,
    password_hash: str,
    role_names=("USER",),
    active: bool = True,
    email: Optional[str] = None,
) -> User:
    roles = []
    for name in role_names:
        role = session.query(Role).filter(Role.role_name == name).first()
        if role is None:
            role = Role(role_name=name, description=name.title())
            session.add(role)
        roles.append(role)
    user = User(
        name=login.title(),
        email=email or f"{login}@example.com",
        login=login,
        password_hash=password_hash,
        active=active,
        roles=roles,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def add_token(
    session: Session,
    token_id: str,
    refresh_token: str,
    user_id: Optional[int] = 1,
    client_id: str = "default-client",
    scopes: str = "read",
    expires_in: int = 3600,
    revoked: bool = False,
) -> AccessToken:
    token = AccessToken(
        token_id=token_id,
        token_value=f"jwe-{token_id}",
        refresh_token=refresh_token,
        user_id=user_id,
        client_id=client_id,
        scopes=scopes,
        expires_at=utcnow() + timedelta(seconds=expires_in),
        revoked=revoked,
    )
    session.add(token)
    session.commit()
    session.refresh(token)
    return token
