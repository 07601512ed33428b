# Overview: Service-layer operations for auth; user accounts and password handling.

"""
Authentication service.

Passwords are hashed with bcrypt (cost factor 12). Every user is its own
tenant: the rows a user creates carry owner_id = user.id.
"""

import bcrypt
from sqlalchemy import or_

from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_USER
from ..time_utils import utcnow

MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength-checked first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe; malformed hashes verify as False."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    full_name: str,
    role: str = ROLE_USER,
) -> User:
    """
    Create a new user.

    Raises ValidationError for missing fields / weak password / unknown role,
    ConflictError when the username or email is taken.
    """
    if not all([username, email, password, full_name]):
        raise ValidationError("All fields are required")
    if role not in ROLES:
        raise ValidationError('Invalid role. Must be "admin" or "user"')

    password_hash = hash_password(password)

    existing = db.session.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username.strip(),
        email=email.strip(),
        password_hash=password_hash,
        full_name=full_name.strip(),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for these credentials, or None."""
    user = db.session.query(User).filter_by(username=username, is_active=True).first()
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def update_user(user_id: int, patch: dict) -> User:
    user = get_user(user_id)

    if "role" in patch and patch["role"] not in ROLES:
        raise ValidationError('Invalid role. Must be "admin" or "user"')

    for field in ("username", "email"):
        value = patch.get(field)
        if value and value != getattr(user, field):
            taken = db.session.query(User).filter(
                getattr(User, field) == value, User.id != user.id
            ).first()
            if taken:
                raise ConflictError("Username or email already exists")

    for field in ("username", "email", "full_name", "role", "is_active"):
        if patch.get(field) is not None:
            setattr(user, field, patch[field])

    db.session.commit()
    return user


def deactivate_user(user_id: int, acting_user_id: int) -> User:
    if user_id == acting_user_id:
        raise ValidationError("Cannot delete your own account")
    user = get_user(user_id)
    user.is_active = False
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current and new password are required")
    validate_password_strength(new_password)
    if not verify_password(current_password, user.password_hash):
        raise AuthError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()
