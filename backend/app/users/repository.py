from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from ..models.AccessToken import utcnow
from ..models.User import Role, User


class UserRepository:
    """Credential and role lookup. Roles are loaded with the user."""

    def __init__(self, session: Session):
        self.session = session

    def _with_roles(self):
        return select(User).options(selectinload(User.roles))

    def find_by_login(self, login: str) -> Optional[User]:
        statement = self._with_roles().where(User.login == login, User.active == True)  # noqa: E712
        return self.session.exec(statement).first()

    def find_by_email(self, email: str) -> Optional[User]:
        statement = self._with_roles().where(User.email == email, User.active == True)  # noqa: E712
        return self.session.exec(statement).first()

    def find_by_id(self, user_id: int) -> Optional[User]:
        # Any status: callers on the refresh path check `active` themselves
        return self.session.exec(self._with_roles().where(User.id == user_id)).first()

    def find_all(self) -> list[User]:
        statement = self._with_roles().order_by(col(User.created_at).desc(), col(User.id).desc())
        return list(self.session.exec(statement).all())

    def exists_by_login(self, login: str) -> bool:
        statement = select(func.count()).select_from(User).where(User.login == login)
        return self.session.exec(statement).one() > 0

    def exists_by_email(self, email: str) -> bool:
        statement = select(func.count()).select_from(User).where(User.email == email)
        return self.session.exec(statement).one() > 0

    def save(self, user: User) -> User:
        if user.id is not None:
            user.updated_at = utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def find_role(self, role_name: str) -> Optional[Role]:
        return self.session.exec(select(Role).where(Role.role_name == role_name)).first()

    def save_role(self, role: Role) -> Role:
        self.session.add(role)
        self.session.commit()
        self.session.refresh(role)
        return role
