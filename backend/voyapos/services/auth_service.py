# Overview: Service-layer operations for auth; password hashing and user accounts.

"""
Authentication Service

WHY: Every sale edit, delete and reconciliation run must be attributable to
a user. Passwords are hashed with bcrypt and checked for strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Store, User
from ..models.auth import ROLE_CASHIER, ROLES
from .errors import NotFound, ValidationError
from .session_service import revoke_all_user_sessions
from voyapos.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost factor 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.
    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        current_app.logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = ROLE_CASHIER,
    store_id: int | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Cashiers must be assigned to an existing store; admins may be global.
    Username and email must be unique or ValidationError is raised.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationError("username and email are required")
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}", details={"allowed": list(ROLES)})

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValidationError("Username or email already exists")

    if store_id is not None:
        if db.session.get(Store, store_id) is None:
            raise NotFound("store", store_id)
    elif role == ROLE_CASHIER:
        raise ValidationError("Cashiers must be assigned to a store")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        store_id=store_id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_users(*, include_inactive: bool = False, store_id: int | None = None) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    if store_id is not None:
        query = query.filter(User.store_id == store_id)
    return query.order_by(User.username).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("user", user_id)
    return user


def update_user(user_id: int, changes: dict, *, actor: User) -> User:
    """
    Apply admin edits to a user: email, role, store_id, is_active.

    Passwords cannot be changed here. A cashier must end up with a store.
    Deactivating revokes every session of the user; admins cannot
    deactivate or demote themselves. Any rejected change leaves the user
    untouched.
    """
    user = get_user(user_id)
    try:
        _apply_user_changes(user, changes, actor)
    except (ValidationError, NotFound):
        db.session.rollback()
        raise

    db.session.commit()
    current_app.logger.info("User %s updated by %s: %s", user.id, actor.id, sorted(changes))
    return user


def _apply_user_changes(user: User, changes: dict, actor: User) -> None:
    unknown = set(changes) - {"email", "role", "store_id", "is_active"}
    if unknown:
        raise ValidationError("Unsupported fields", details={"fields": sorted(unknown)})

    if "email" in changes:
        email = (changes["email"] or "").strip().lower()
        if not email:
            raise ValidationError("email cannot be empty")
        taken = db.session.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ValidationError("Email already in use")
        user.email = email

    if "role" in changes:
        role = changes["role"]
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}", details={"allowed": list(ROLES)})
        if user.id == actor.id and role != user.role:
            raise ValidationError("Cannot change your own role")
        user.role = role

    if "store_id" in changes:
        store_id = changes["store_id"]
        if store_id is not None:
            if isinstance(store_id, bool) or not isinstance(store_id, int):
                raise ValidationError("store_id must be an integer")
            if db.session.get(Store, store_id) is None:
                raise NotFound("store", store_id)
        user.store_id = store_id

    if user.role == ROLE_CASHIER and user.store_id is None:
        raise ValidationError("Cashiers must be assigned to a store")

    if "is_active" in changes:
        is_active = changes["is_active"]
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be a boolean")
        if not is_active and user.is_active:
            _deactivate(user, actor)
        user.is_active = is_active


def _deactivate(user: User, actor: User) -> int:
    if user.id == actor.id:
        raise ValidationError("Cannot deactivate your own account")
    user.is_active = False
    return revoke_all_user_sessions(user.id)


def deactivate_user(user_id: int, *, actor: User) -> int:
    """Deactivate a user and revoke their sessions; returns the revoked count."""
    user = get_user(user_id)
    if not user.is_active:
        raise ValidationError("User is already deactivated")
    try:
        revoked = _deactivate(user, actor)
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    current_app.logger.info("User %s deactivated by %s (%d sessions revoked)", user.id, actor.id, revoked)
    return revoked
