from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from swaadgharka.models.user import User
from swaadgharka.services.auth import hash_password, password_looks_hashed


def ensure_users_table(engine: Engine) -> None:
    inspector = inspect(engine)
    if not inspector.has_table("users"):
        raise RuntimeError("Table users not found. Run `alembic upgrade head` first.")


def upsert_admin_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str | None,
) -> tuple[User, bool]:
    """Create or promote an administrator account. Returns (user, created)."""
    email = email.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        existing.name = name
        existing.role = "admin"
        existing.is_active = True
        if password:
            existing.password_hash = _resolve_password_hash(password)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("A password is required to create a new admin.")

    admin = User(
        email=email,
        name=name,
        password_hash=_resolve_password_hash(password),
        role="admin",
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, True


def _resolve_password_hash(password: str) -> str:
    # Deploy environments may hand over an already hashed secret
    if password_looks_hashed(password):
        return password
    return hash_password(password)
