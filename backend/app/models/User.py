from datetime import datetime
from typing import Optional

from sqlmodel import Field, Relationship, SQLModel

from .AccessToken import utcnow


# ==========================================
# SQLModel (Database Entities)
# ==========================================
class UserRoleLink(SQLModel, table=True):
    __tablename__ = "user_roles"

    user_id: Optional[int] = Field(default=None, foreign_key="users.id", primary_key=True)
    role_id: Optional[int] = Field(default=None, foreign_key="roles.id", primary_key=True)


class Role(SQLModel, table=True):
    __tablename__ = "roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    role_name: str = Field(unique=True, index=True, nullable=False)
    description: Optional[str] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    users: list["User"] = Relationship(back_populates="roles", link_model=UserRoleLink)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True, nullable=False)
    login: str = Field(unique=True, index=True, nullable=False)
    password_hash: str
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    roles: list[Role] = Relationship(back_populates="users", link_model=UserRoleLink)

    @property
    def role_names(self) -> list[str]:
        return [role.role_name for role in self.roles]


# ==========================================
# Pydantic Models (DTOs)
# ==========================================

# Properties to return via the admin listing
class UserResponse(SQLModel):
    id: int
    name: str
    login: str
    email: str
    active: bool
    roles: list[str] = []
