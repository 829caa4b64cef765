"""FastAPI dependencies: settings, sessions, clock and authenticated principals."""

from collections.abc import Callable, Generator
from datetime import datetime

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pwrmon.config.settings import Settings
from pwrmon.db.engine import get_session
from pwrmon.db.models.device import Device
from pwrmon.db.models.user import User
from pwrmon.services.auth import AuthService, authenticate_device
from pwrmon.utils.exceptions import AuthenticationError, AuthorizationError, ValidationError

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per request, committed on success and rolled back on error."""
    with get_session(request.app.state.engine) as session:
        yield session


def require_device(
    api_key: str | None = Header(default=None, alias="X-API-Key"),
    session: Session = Depends(get_db),
) -> Device:
    return authenticate_device(session, api_key)


def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return AuthService(session, settings).user_from_token(credentials.credentials)


def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user


def device_pk(id: str) -> int:
    """Parse the numeric device id from the path."""
    try:
        return int(id)
    except ValueError:
        raise ValidationError("Invalid device ID", field="id") from None
