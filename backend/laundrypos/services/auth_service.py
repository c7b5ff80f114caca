"""
Authentication Service

The shop has a single administrator. ``signup`` works only while no account
exists; after that accounts are created from the CLI (``flask users create-admin``).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging
import re

import bcrypt
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import User
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    default_kind = "weak_password"


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")
    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Validate strength, then bcrypt. Stored as str."""
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the row
        return False


def has_users() -> bool:
    return db.session.query(User.id).first() is not None


def create_user(username: str, email: str, password: str, rounds: int = BCRYPT_ROUNDS) -> User:
    """
    Raises:
        ValidationError: missing username/email
        PasswordValidationError: weak password
        ConflictError: username or email taken
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username:
        raise ValidationError("username is required", details={"field": "username"})
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", details={"field": "email"})

    existing = db.session.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists", kind="user_exists")

    user = User(username=username, email=email, password_hash=hash_password(password, rounds))
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username or email already exists", kind="user_exists")

    logger.info("Created user %s", username)
    return user


def signup(username: str, email: str, password: str, rounds: int = BCRYPT_ROUNDS) -> User:
    """First-run account creation; refused once an administrator exists."""
    if has_users():
        raise ConflictError("An administrator account already exists", kind="signup_closed")
    return create_user(username, email, password, rounds)


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the active user matching username (or email) and password,
    otherwise None. Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        or_(User.username == username.strip(), User.email == username.strip().lower()),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
