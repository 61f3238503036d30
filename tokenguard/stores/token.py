"""Persistence for hashed tokens."""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import delete, false, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError

from tokenguard.errors import ConflictError
from tokenguard.models.token import Token, TokenScope


class TokenStore:
    """Keyed storage of tokens by (scope, hash), bound to one session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def save(self, token: Token) -> Token:
        """Insert a token. Raises ConflictError if its hash is already stored."""
        self.db.add(token)
        try:
            self.db.flush()
        except (IntegrityError, FlushError) as exc:
            raise ConflictError("Token could not be stored") from exc
        return token

    def save_nothing(self) -> None:
        """Run an INSERT that selects no rows, costing the same round trip as ``save``."""
        table = Token.__table__
        columns = [
            table.c.hash,
            table.c.scope,
            table.c.issued_at,
            table.c.expires_in,
            table.c.expires_at,
            table.c.user_id,
        ]
        stmt = insert(table).from_select(columns, select(*columns).where(false()))
        self.db.execute(stmt)

    def find_by_scope_and_hash(self, scope: TokenScope, token_hash: str) -> Token | None:
        stmt = select(Token).where(Token.scope == scope, Token.hash == token_hash)
        return self.db.scalars(stmt).first()

    def delete_by_scope_and_user(self, scope: TokenScope, user_id: int) -> int:
        return self.delete_by_scopes_and_user({scope}, user_id)

    def delete_by_scopes_and_user(self, scopes: Iterable[TokenScope], user_id: int) -> int:
        """Delete every token of the given scopes owned by the user in one statement."""
        stmt = delete(Token).where(Token.scope.in_(list(scopes)), Token.user_id == user_id)
        return self.db.execute(stmt).rowcount

    def delete_expired(self, now: datetime) -> int:
        """Remove tokens whose expiry has passed. Returns the number of rows deleted."""
        stmt = delete(Token).where(Token.expires_at <= now)
        return self.db.execute(stmt).rowcount
