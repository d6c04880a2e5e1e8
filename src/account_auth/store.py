"""
Credential store: user record persistence on top of a SQLAlchemy session
"""
import logging
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import User

logger = logging.getLogger(__name__)

TOKEN_FIELDS = {
    "verify_token": "verify_token_expires_at",
    "reset_token": "reset_token_expires_at",
}


class DuplicateEmailError(Exception):
    """Insert hit the unique constraint on email"""

    def __init__(self, email: str):
        super().__init__(f"User with email {email} already exists")
        self.email = email


class UserStore:
    """
    Record store keyed by email.

    Every write commits immediately; single-row UPDATE statements are the
    unit of atomicity.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def insert(self, **fields: Any) -> User:
        """Create a new record, raising DuplicateEmailError on a concurrent duplicate"""
        user = User(**fields)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Insert rejected by unique constraint for email: {fields.get('email')}")
            raise DuplicateEmailError(fields.get("email"))
        self.db.refresh(user)
        return user

    def update_fields(self, email: str, **fields: Any) -> bool:
        """Atomically set fields on the record for email. Returns False if no record matched."""
        result = self.db.execute(
            update(User).where(User.email == email).values(**fields)
        )
        self.db.commit()
        return result.rowcount == 1

    def save(self, user: User) -> User:
        """Persist in-place changes made to a loaded record"""
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def consume_token(self, email: str, token_field: str, token: str, **fields: Any) -> bool:
        """
        Clear a pending token only if it still holds the given value.

        Compare-and-swap on the token column: of two concurrent consumers
        of the same token, exactly one sees True. Extra fields are written
        in the same statement.
        """
        if not token:
            return False
        expires_field = TOKEN_FIELDS[token_field]
        column = getattr(User, token_field)
        values = {token_field: "", expires_field: 0}
        values.update(fields)
        result = self.db.execute(
            update(User)
            .where(User.email == email, column == token)
            .values(**values)
        )
        self.db.commit()
        return result.rowcount == 1
