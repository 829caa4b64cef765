"""User registration, login, profile and password management."""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from pwrmon.api.deps import get_app_settings, get_db, require_user
from pwrmon.api.responses import envelope
from pwrmon.config.settings import Settings
from pwrmon.db.models.user import User
from pwrmon.services.auth import AuthService, create_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


class RegisterRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ProfileUpdate(BaseModel):
    username: str | None = None
    email: str | None = None


class PasswordChange(BaseModel):
    """Accepts the camelCase keys the dashboard sends as well as snake_case."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(default="", alias="currentPassword")
    new_password: str = Field(default="", alias="newPassword")


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Create a regular user account and sign the user in."""
    user = AuthService(session, settings).register(body.username, body.email, body.password)
    return envelope(
        "User registered successfully",
        {"user": user.to_dict(), "token": create_token(user, settings)},
    )


@router.post("/login")
def login(
    body: LoginRequest,
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    user, token = AuthService(session, settings).login(body.email, body.password)
    return envelope("Login successful", {"user": user.to_dict(), "token": token})


@router.get("/profile")
def profile(user: User = Depends(require_user)) -> dict[str, Any]:
    return envelope("Profile retrieved successfully", user.to_dict())


@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    user: User = Depends(require_user),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    user = AuthService(session, settings).update_profile(user, body.username, body.email)
    return envelope("Profile updated successfully", user.to_dict())


@router.put("/change-password")
def change_password(
    body: PasswordChange,
    user: User = Depends(require_user),
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    AuthService(session, settings).change_password(
        user, body.current_password, body.new_password
    )
    return envelope("Password changed successfully")
