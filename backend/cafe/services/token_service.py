# Overview: JWT access/refresh token issuing and verification.

"""
Token Service

Access and refresh tokens are HS256 JWTs signed with different secrets and
tagged with a "type" claim so one can never be replayed as the other.

Only a SHA-256 hash of the current refresh token is stored on the user.
WHY SHA-256 not bcrypt: tokens are already high-entropy (unlike passwords).
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta, timezone

import jwt
from flask import current_app

from ..models import User
from ..validation import AuthError
from ..time_utils import utcnow


TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict:
        return {"access_token": self.access_token, "refresh_token": self.refresh_token}


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _encode(user: User, token_type: str, secret: str, lifetime: timedelta) -> str:
    now = utcnow().replace(tzinfo=timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=current_app.config["JWT_ALGORITHM"])


def issue_tokens(user: User) -> TokenPair:
    config = current_app.config
    access = _encode(
        user,
        TOKEN_TYPE_ACCESS,
        config["JWT_SECRET"],
        timedelta(minutes=config["JWT_ACCESS_EXPIRES_MINUTES"]),
    )
    refresh = _encode(
        user,
        TOKEN_TYPE_REFRESH,
        config["JWT_REFRESH_SECRET"],
        timedelta(days=config["JWT_REFRESH_EXPIRES_DAYS"]),
    )
    return TokenPair(access_token=access, refresh_token=refresh)


def decode_token(token: str, token_type: str) -> dict:
    """Verify signature, expiry and type; returns the claims. Raises AuthError."""
    config = current_app.config
    secret = config["JWT_SECRET"] if token_type == TOKEN_TYPE_ACCESS else config["JWT_REFRESH_SECRET"]
    try:
        claims = jwt.decode(token, secret, algorithms=[config["JWT_ALGORITHM"]])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")

    if claims.get("type") != token_type:
        raise AuthError("Invalid token type")
    try:
        claims["sub"] = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthError("Invalid token subject")
    return claims
