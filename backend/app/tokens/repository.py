from typing import Optional

from sqlalchemy import delete, func, or_, update
from sqlmodel import Session, col, select

from ..models.AccessToken import AccessToken, utcnow


class AccessTokenRepository:
    """Persistence for issued access/refresh token pairs.

    The two lookups used on the refresh and validation paths only ever
    return records that are neither revoked nor expired.
    """

    def __init__(self, session: Session):
        self.session = session

    def save(self, token: AccessToken) -> AccessToken:
        if token.id is None:
            return self._insert(token)
        return self._update(token)

    def _insert(self, token: AccessToken) -> AccessToken:
        token.created_at = utcnow()
        self.session.add(token)
        self.session.commit()
        self.session.refresh(token)
        return token

    def _update(self, token: AccessToken) -> AccessToken:
        # token_id, owner and client are fixed at creation
        values = dict(
            token_value=token.token_value,
            refresh_token=token.refresh_token,
            scopes=token.scopes,
            expires_at=token.expires_at,
            revoked=token.revoked,
        )
        if token in self.session:
            # drop pending edits so the flush on commit cannot write other columns
            self.session.expire(token)
        self.session.exec(update(AccessToken).where(AccessToken.id == token.id).values(**values))
        self.session.commit()
        return token

    def _active(self):
        return select(AccessToken).where(
            AccessToken.revoked == False,  # noqa: E712
            AccessToken.expires_at > utcnow(),
        )

    def find_by_token_id(self, token_id: str) -> Optional[AccessToken]:
        return self.session.exec(self._active().where(AccessToken.token_id == token_id)).first()

    def find_by_refresh_token(self, refresh_token: str) -> Optional[AccessToken]:
        return self.session.exec(
            self._active().where(AccessToken.refresh_token == refresh_token)
        ).first()

    def find_by_user_id(self, user_id: int) -> list[AccessToken]:
        statement = (
            select(AccessToken)
            .where(AccessToken.user_id == user_id)
            .order_by(col(AccessToken.created_at).desc(), col(AccessToken.id).desc())
        )
        return list(self.session.exec(statement).all())

    def find_by_client_id(self, client_id: str) -> list[AccessToken]:
        statement = (
            select(AccessToken)
            .where(AccessToken.client_id == client_id)
            .order_by(col(AccessToken.created_at).desc(), col(AccessToken.id).desc())
        )
        return list(self.session.exec(statement).all())

    def find_expired(self) -> list[AccessToken]:
        statement = select(AccessToken).where(
            AccessToken.expires_at < utcnow(),
            AccessToken.revoked == False,  # noqa: E712
        )
        return list(self.session.exec(statement).all())

    def revoke(self, token_id: str) -> int:
        """Mark a token revoked. Unknown ids are ignored."""
        result = self.session.exec(
            update(AccessToken).where(AccessToken.token_id == token_id).values(revoked=True)
        )
        self.session.commit()
        return result.rowcount

    def revoke_all_for_user(self, user_id: int) -> int:
        result = self.session.exec(
            update(AccessToken).where(AccessToken.user_id == user_id).values(revoked=True)
        )
        self.session.commit()
        return result.rowcount

    def claim(self, token: AccessToken) -> bool:
        """Revoke a record only if it is still unrevoked.

        Returns True for the single caller that flipped the flag, so two
        concurrent refreshes with the same refresh token cannot both win.
        """
        result = self.session.exec(
            update(AccessToken)
            .where(AccessToken.id == token.id, AccessToken.revoked == False)  # noqa: E712
            .values(revoked=True)
        )
        self.session.commit()
        return result.rowcount == 1

    def delete_expired_or_revoked(self) -> int:
        result = self.session.exec(
            delete(AccessToken).where(
                or_(AccessToken.expires_at < utcnow(), AccessToken.revoked == True)  # noqa: E712
            )
        )
        self.session.commit()
        return result.rowcount

    def delete_by_id(self, record_id: int) -> None:
        self.session.exec(delete(AccessToken).where(AccessToken.id == record_id))
        self.session.commit()

    def exists_active(self, token_id: str) -> bool:
        statement = (
            select(func.count())
            .select_from(AccessToken)
            .where(AccessToken.token_id == token_id, AccessToken.revoked == False)  # noqa: E712
        )
        return self.session.exec(statement).one() > 0
