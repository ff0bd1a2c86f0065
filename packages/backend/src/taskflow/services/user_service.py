"""User service — the credential store.

Learn: Registration, lookup and password checks live here so the auth
routes and the authorization gate share one definition of "a user".
Emails are normalized before every read and write; the unique index on
users.email is the final arbiter when two registrations race.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.auth.password import hash_password, verify_password
from taskflow.db.models import User
from taskflow.errors import ValidationError


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Create and look up users."""

    def __init__(self, db: AsyncSession, bcrypt_rounds: int = 12):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    async def create_user(self, name: str, email: str, password: str) -> User:
        """Register a new user. Duplicate emails are a ValidationError."""
        email = normalize_email(email)
        if await self.find_by_email(email):
            raise ValidationError("User already exists")

        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError("User already exists")
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalars().first()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        try:
            key = uuid.UUID(str(user_id))
        except ValueError:
            return None
        return await self.db.get(User, key)

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if the password matches, else None."""
        user = await self.find_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user
