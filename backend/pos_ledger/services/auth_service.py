# Overview: Service-layer operations for auth; password hashing and user management.

"""
Authentication Service

WHY: Every sale and ledger entry must be attributable. Uses bcrypt for
password hashing and validates password strength.
"""

import bcrypt
import re
from flask import current_app
from ..extensions import db
from ..models import User, USER_ROLES
from ..errors import ValidationError, ConflictError, AuthenticationError
from ..time_utils import utcnow


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise ValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise ValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost factor from BCRYPT_ROUNDS, default 12)."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    password: str,
    role: str = "cashier",
    full_name: str | None = None,
    email: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad role or weak password
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError(f"Username {username!r} already exists")

    user = User(
        username=username,
        full_name=full_name,
        email=email,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User:
    """Return the active user for these credentials or raise AuthenticationError."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()

    if not user or not user.is_active or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid username or password")

    user.last_login_at = utcnow()
    db.session.commit()
    return user
