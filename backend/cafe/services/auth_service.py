# Overview: Service-layer operations for auth; registration, login, token rotation and profile.

"""
Authentication Service

WHY: Registered users own orders, reviews and a reward balance. Uses bcrypt
for password hashing and PyJWT (see token_service) for stateless tokens.

REGISTRATION MERGE: when the new account's phone belongs to a guest
Customer, the guest's orders, points, ledger rows and reviews move to the new
User in the same transaction that creates it (merge_service).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12), minimum 6 characters
- Emails are stored lower-cased and compared case-insensitively
- Only the SHA-256 of the current refresh token is stored; refresh rotates it
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_CUSTOMER, ROLES
from ..validation import AuthError, ConflictError, ValidationError, coerce_choice
from ..time_utils import utcnow
from . import token_service
from .concurrency import begin_write, run_with_retry
from .identity_service import (
    ensure_phone_available,
    find_customer_by_phone,
    find_user_by_phone,
    get_active_user,
    normalize_phone,
)
from .merge_service import transfer_customer_to_user


MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet requirements."""


def validate_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email) -> str:
    email = (email or "").strip().lower() if isinstance(email, str) else ""
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    return email


def _find_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter(User.email == email).first()


def _issue_and_store(user: User) -> token_service.TokenPair:
    tokens = token_service.issue_tokens(user)
    user.refresh_token_hash = token_service.hash_token(tokens.refresh_token)
    return tokens


def create_user(
    *,
    email: str,
    password: str,
    full_name: str,
    phone: str | None = None,
    role: str = ROLE_CUSTOMER,
) -> User:
    """
    Create a user without the guest merge (used by the CLI for staff accounts).

    Raises:
        ValidationError: bad email, password or role
        ConflictError: email or phone already taken
    """
    email = _normalize_email(email)
    role = coerce_choice(role, "role", ROLES)
    phone = normalize_phone(phone)
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("full_name is required")

    if _find_user_by_email(email):
        raise ConflictError("Email is already registered")
    ensure_phone_available(phone)

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        phone=phone,
        role=role,
        reward_points=0,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register(payload: dict) -> tuple[User, token_service.TokenPair, dict | None]:
    """
    Self-service sign-up (always role CUSTOMER).

    Returns (user, tokens, merge_summary); merge_summary is None unless a
    guest customer with the same phone was folded into the new account.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    email = _normalize_email(payload.get("email"))
    password = payload.get("password")
    validate_password_strength(password)
    full_name = (payload.get("full_name") or "").strip()
    if not full_name:
        raise ValidationError("full_name is required")
    phone = normalize_phone(payload.get("phone"))

    password_hash = hash_password(password)

    def _op():
        begin_write()
        if _find_user_by_email(email):
            raise ConflictError("Email is already registered")
        if phone and find_user_by_phone(phone):
            raise ConflictError("Phone number already exists for a registered user")

        user = User(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            phone=phone,
            role=ROLE_CUSTOMER,
            reward_points=0,
        )
        db.session.add(user)
        db.session.flush()

        summary = None
        guest = find_customer_by_phone(phone) if phone else None
        if guest is not None:
            summary = transfer_customer_to_user(guest.id, user.id)

        tokens = _issue_and_store(user)
        db.session.commit()
        return user, tokens, summary

    user, tokens, summary = run_with_retry(_op)
    current_app.logger.info(
        "User %s registered%s", user.id, f" (merged customer {summary['customer_id']})" if summary else ""
    )
    return user, tokens, summary


def login(email, password) -> tuple[User, token_service.TokenPair]:
    """Verify credentials, stamp last_login_at and issue a fresh token pair."""
    if not email or not password:
        raise ValidationError("email and password required")

    user = _find_user_by_email(str(email).strip().lower())
    if not user or user.deleted_at is not None or not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")

    try:
        user.last_login_at = utcnow()
        tokens = _issue_and_store(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user, tokens


def refresh(refresh_token) -> tuple[User, token_service.TokenPair]:
    """
    Exchange a refresh token for a new pair (rotation).

    A refresh token that is not the currently stored one (already rotated,
    or logged out) is rejected.
    """
    if not refresh_token or not isinstance(refresh_token, str):
        raise ValidationError("refresh_token is required")

    claims = token_service.decode_token(refresh_token, token_service.TOKEN_TYPE_REFRESH)
    user = db.session.query(User).filter(User.id == claims["sub"], User.deleted_at.is_(None)).first()
    if not user or user.refresh_token_hash != token_service.hash_token(refresh_token):
        raise AuthError("Invalid refresh token")

    try:
        tokens = _issue_and_store(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user, tokens


def logout(user_id: int) -> None:
    user = get_active_user(user_id)
    user.refresh_token_hash = None
    db.session.commit()


def update_profile(user_id: int, patch: dict) -> User:
    """
    Self-service profile edit: full_name, phone, password.

    Changing the password requires current_password.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    allowed = {"full_name", "phone", "password", "current_password"}
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    user = get_active_user(user_id)
    try:
        if "full_name" in patch:
            full_name = (patch["full_name"] or "").strip()
            if not full_name:
                raise ValidationError("full_name cannot be blank")
            user.full_name = full_name

        if "phone" in patch:
            phone = normalize_phone(patch["phone"])
            ensure_phone_available(phone, exclude_user_id=user.id)
            user.phone = phone

        if patch.get("password"):
            if not verify_password(patch.get("current_password"), user.password_hash):
                raise ValidationError("Current password is incorrect")
            user.password_hash = hash_password(patch["password"])

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user
