"""User repository."""

from sqlalchemy import select

from pwrmon.db.models.user import User
from pwrmon.db.repositories.base import BaseRepository
from pwrmon.utils.exceptions import DuplicateKeyError


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    model = User

    def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        with self.translate_errors():
            return self.session.scalar(stmt)

    def find_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        with self.translate_errors():
            return self.session.scalar(stmt)

    def email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        """Check whether another user already has this email."""
        user = self.find_by_email(email)
        return user is not None and user.id != exclude_id

    def username_taken(self, username: str, exclude_id: int | None = None) -> bool:
        """Check whether another user already has this username."""
        user = self.find_by_username(username)
        return user is not None and user.id != exclude_id

    def create(self, username: str, email: str, password_hash: str, role: str = "user") -> User:
        """Insert a new user.

        Args:
            username: Unique login name.
            email: Unique email address.
            password_hash: Already hashed password.
            role: ``admin`` or ``user``.

        Returns:
            The created user.

        Raises:
            DuplicateKeyError: If the email or username is taken.
        """
        if self.email_taken(email):
            raise DuplicateKeyError("Email already registered")
        if self.username_taken(username):
            raise DuplicateKeyError("Username already taken")

        return self.add(
            User(username=username, email=email, password_hash=password_hash, role=role)
        )
