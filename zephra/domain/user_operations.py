import logging
import uuid as uuid_pkg
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from zephra.core.exceptions import DatabaseError, UserNotFoundError
from zephra.models.user import User

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({"full_name", "phone", "company", "avatar_url"})


class UserOperations:
    """Operations for User model."""

    async def _first(self, db: AsyncSession, *criteria: ColumnElement[bool]) -> User | None:
        statement = select(User).where(*criteria)
        try:
            result = await db.execute(statement)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to read user record") from e
        return result.scalar_one_or_none()

    async def get(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> User | None:
        """Get a user by ID."""
        return await self._first(db, User.id == user_id)

    async def create(self, db: AsyncSession, obj_in: dict[str, Any]) -> User:
        """Create a user row (first authenticated call for a Supabase account)."""
        user = User(**obj_in)
        db.add(user)
        try:
            await db.flush()
            await db.refresh(user)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to create user record") from e
        logger.info(f"Created user {user.id}")
        return user

    async def update_profile(self, db: AsyncSession, user: User, obj_in: dict[str, Any]) -> User:
        """Update a user's profile fields.

        Only profile fields are applied; billing columns are owned by the
        webhook handlers.
        """
        for field, value in obj_in.items():
            if field in PROFILE_FIELDS:
                setattr(user, field, value)
        db.add(user)
        try:
            await db.flush()
            await db.refresh(user)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to update user profile") from e
        return user

    async def update_where(
        self,
        db: AsyncSession,
        values: dict[str, Any],
        *criteria: ColumnElement[bool],
    ) -> int:
        """Issue a single UPDATE users ... WHERE ... and return the affected row count."""
        statement = update(User).where(*criteria).values(**values)
        try:
            result = await db.execute(statement)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to update user record") from e
        return result.rowcount  # type: ignore[attr-defined,no-any-return]

    async def update_matching(
        self,
        db: AsyncSession,
        values: dict[str, Any],
        match: dict[str, Any],
    ) -> int:
        """
        Update users whose columns equal every value in match.

        Raises UserNotFoundError when nothing matched, so a webhook for an
        unknown account fails loudly instead of silently succeeding.
        """
        criteria = [getattr(User, column) == value for column, value in match.items()]
        updated = await self.update_where(db, values, *criteria)
        if updated == 0:
            raise UserNotFoundError(match)
        logger.info(f"Updated {updated} user row(s) matching {sorted(match)}: {sorted(values)}")
        return updated


user_ops = UserOperations()
