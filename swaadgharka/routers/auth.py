from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from swaadgharka.core.choices import PHONE_PATTERN
from swaadgharka.core.config import ACTION_RATE_WINDOW_SECONDS, LOGIN_RATE_LIMIT, TRUSTED_PROXIES
from swaadgharka.core.database import get_db
from swaadgharka.core.errors import Conflict, Unauthenticated, ValidationFailed
from swaadgharka.deps import enforce_rate_limit, get_current_user
from swaadgharka.middleware.rate_limit import client_address
from swaadgharka.models.user import User
from swaadgharka.schemas.users import ProfileUpdate, user_to_dict
from swaadgharka.services import user_accounts
from swaadgharka.services.auth import create_access_token, hash_password, verify_password

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)


class RegisterPayload(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePasswordPayload(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


def _authenticate(request: Request, db: Session, email: str, password: str) -> User:
    client = client_address(request, TRUSTED_PROXIES)
    enforce_rate_limit(
        request,
        action="login",
        limit=LOGIN_RATE_LIMIT,
        window_seconds=ACTION_RATE_WINDOW_SECONDS,
        subject=f"{client}:{email.strip().lower()}",
    )

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Login failed email=%s", email)
        raise Unauthenticated("Invalid credentials")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated")
    return user


@router.post("/register", status_code=201)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise Conflict("Email is already registered")
    if payload.phone and db.query(User).filter(User.phone == payload.phone).first():
        raise Conflict("Phone number is already registered")

    user = User(
        name=payload.name.strip(),
        email=email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        role="customer",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered user_id=%s", user.id)

    return {
        "success": True,
        "message": "User registered successfully",
        "data": {"user": user_to_dict(user), "token": create_access_token(user.id)},
    }


@router.post("/login")
def login(payload: LoginPayload, request: Request, db: Session = Depends(get_db)):
    user = _authenticate(request, db, payload.email, payload.password)
    return {
        "success": True,
        "message": "Login successful",
        "data": {"user": user_to_dict(user), "token": create_access_token(user.id)},
    }


@router.post("/token")
def token(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Used by the Swagger UI Authorize button (form fields username and password)."""
    user = _authenticate(request, db, form_data.username, form_data.password)
    return {"access_token": create_access_token(user.id), "token_type": "bearer"}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": user_to_dict(user)}}


@router.put("/change-password")
def change_password(
    payload: ChangePasswordPayload,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(payload.current_password, user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise ValidationFailed("New password must differ from the current one")

    user.password_hash = hash_password(payload.new_password)
    db.commit()
    logger.info("Password changed user_id=%s", user.id)
    return {"success": True, "message": "Password changed successfully"}


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = user_accounts.update_profile(
        db,
        user,
        name=payload.name,
        phone=payload.phone,
        address=payload.address.model_dump(exclude_unset=True) if payload.address else None,
        preferences=payload.preferences.model_dump(exclude_unset=True) if payload.preferences else None,
    )
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": user_to_dict(user)},
    }


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    logger.info("User logged out user_id=%s", user.id)
    return {"success": True, "message": "Logged out successfully"}
