"""Authentication of users (bearer tokens) and devices (API keys)."""

import base64
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from pwrmon.config.settings import Settings
from pwrmon.db.models.device import Device
from pwrmon.db.models.user import User
from pwrmon.db.repositories.device import DeviceRepository
from pwrmon.db.repositories.user import UserRepository
from pwrmon.utils.exceptions import AuthenticationError, DuplicateKeyError, ValidationError
from pwrmon.utils.validators import is_valid_email, is_valid_password

logger = structlog.get_logger(__name__)

PBKDF2_ITERATIONS = 390_000
ROLES = ("admin", "user")

PASSWORD_POLICY = "at least 8 characters with uppercase, lowercase, and number"


def hash_password(password: str) -> str:
    """Hash a password as ``pbkdf2_sha256$iterations$salt$digest``."""
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return "$".join(
        [
            "pbkdf2_sha256",
            str(PBKDF2_ITERATIONS),
            base64.b64encode(salt).decode(),
            base64.b64encode(digest).decode(),
        ]
    )


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, digest = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    candidate = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), base64.b64decode(salt), int(iterations)
    )
    return hmac.compare_digest(candidate, base64.b64decode(digest))


def create_token(user: User, settings: Settings) -> str:
    """Issue a signed bearer token for a user."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(
        payload, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm
    )


def decode_token(token: str, settings: Settings) -> dict[str, Any]:
    """Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: If the token is malformed, forged or expired.
    """
    try:
        return jwt.decode(
            token, settings.jwt_secret.get_secret_value(), algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        raise AuthenticationError("Invalid token") from e


class AuthService:
    """Registers users and exchanges credentials for tokens."""

    def __init__(self, session: Session, settings: Settings) -> None:
        self.session = session
        self.settings = settings
        self.users = UserRepository(session)

    def register(self, username: str, email: str, password: str, role: str = "user") -> User:
        """Create a user account.

        Raises:
            ValidationError: On missing fields, a bad email or a weak password.
            DuplicateKeyError: If the email or username is taken.
        """
        if not username or not email or not password:
            raise ValidationError("Username, email, and password are required")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format", field="email")
        if not is_valid_password(password):
            raise ValidationError(
                f"Password must be {PASSWORD_POLICY}",
                field="password",
            )
        if role not in ROLES:
            raise ValidationError("Invalid role", field="role")

        user = self.users.create(username, email, hash_password(password), role)
        self.users.commit()
        logger.info("User registered", user_id=user.id, role=role)
        return user

    def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and issue a token.

        Raises:
            ValidationError: If a field is missing.
            AuthenticationError: If the credentials do not match. The message
                does not say which part was wrong.
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = self.users.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return user, create_token(user, self.settings)

    def update_profile(
        self, user: User, username: str | None = None, email: str | None = None
    ) -> User:
        """Change a user's username and/or email.

        Empty values are ignored, so a client can send just the field it edits.

        Args:
            user: The signed-in user.
            username: New username.
            email: New email address.

        Returns:
            The updated user.

        Raises:
            ValidationError: If the email is malformed or nothing would change.
            DuplicateKeyError: If another user has the username or email.
        """
        changes: dict[str, str] = {}
        if username:
            if self.users.username_taken(username, exclude_id=user.id):
                raise DuplicateKeyError("Username already taken")
            changes["username"] = username
        if email:
            if not is_valid_email(email):
                raise ValidationError("Invalid email format", field="email")
            if self.users.email_taken(email, exclude_id=user.id):
                raise DuplicateKeyError("Email already registered")
            changes["email"] = email
        if not changes:
            raise ValidationError("No valid fields to update")

        for name, value in changes.items():
            setattr(user, name, value)
        self.users.commit()
        logger.info("Profile updated", user_id=user.id, fields=sorted(changes))
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """Replace a user's password after re-checking the current one.

        Raises:
            ValidationError: If a field is missing or the new password is weak.
            AuthenticationError: If the current password does not match.
        """
        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required")
        if not is_valid_password(new_password):
            raise ValidationError(
                f"New password must be {PASSWORD_POLICY}", field="new_password"
            )
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = hash_password(new_password)
        self.users.commit()
        logger.info("Password changed", user_id=user.id)

    def user_from_token(self, token: str) -> User:
        """Resolve a bearer token to its user.

        Raises:
            AuthenticationError: If the token is invalid or the user is gone.
        """
        claims = decode_token(token, self.settings)
        try:
            user_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise AuthenticationError("Invalid token") from e

        user = self.users.find(user_id)
        if user is None:
            raise AuthenticationError("User not found")
        return user


def authenticate_device(session: Session, api_key: str | None) -> Device:
    """Resolve an API key to an active device.

    Raises:
        AuthenticationError: If the key is missing, unknown or belongs to an
            inactive device.
    """
    if not api_key:
        raise AuthenticationError("API key required")

    device = DeviceRepository(session).find_by_api_key(api_key)
    if device is None or not device.is_active:
        raise AuthenticationError("Invalid API key or device inactive")
    return device
