from sqlmodel import Session

from .database import engine
from .logging import get_logger
from .security import get_password_hash
from .settings import settings
from ..models.User import Role, User
from ..users.repository import UserRepository

logger = get_logger(__name__)

DEFAULT_ROLES = {
    "ADMIN": "Administrator",
    "USER": "Regular user",
}


def seed_roles(users: UserRepository) -> dict[str, Role]:
    roles = {}
    for name, description in DEFAULT_ROLES.items():
        role = users.find_role(name)
        if role is None:
            role = users.save_role(Role(role_name=name, description=description))
            logger.info("Created role", role=name)
        roles[name] = role
    return roles


def seed_user(users: UserRepository, login: str, password: str, name: str, email: str, roles: list[Role]) -> None:
    if users.exists_by_login(login):
        logger.info("User already exists", login=login)
        return
    users.save(
        User(
            name=name,
            email=email,
            login=login,
            password_hash=get_password_hash(password),
            active=True,
            roles=roles,
        )
    )
    logger.info("Created user", login=login)


def init_db(session: Session | None = None):
    if session is None:
        with Session(engine) as session:
            return init_db(session)

    users = UserRepository(session)
    roles = seed_roles(users)
    seed_user(
        users,
        settings.ADMIN_USERNAME,
        settings.ADMIN_PASSWORD,
        "Administrator",
        "admin@oauth2.local",
        [roles["ADMIN"], roles["USER"]],
    )
