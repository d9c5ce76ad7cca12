from pathlib import Path

from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.pool import StaticPool
from .settings import settings


def build_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url)

    # check_same_thread=False is needed only for SQLite
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # a single shared connection keeps the in-memory database alive
        kwargs["poolclass"] = StaticPool
    elif url.startswith("sqlite:///"):
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
