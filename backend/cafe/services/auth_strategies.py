# Overview: Pluggable request authentication, selected once at app startup.

"""
Authentication Strategies

WHY: Business logic only ever sees a Principal (user id + role). How the
principal is established is a deployment decision:
- jwt:            "Authorization: Bearer <access token>" (default)
- trusted-header: X-User-Id / X-User-Role set by a gateway that already
                  authenticated the caller. Never expose this mode directly.

create_app() builds exactly one strategy from AUTH_STRATEGY and stores it in
app.extensions; nothing downstream branches on the mode.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.auth import ROLES
from ..validation import AuthError
from . import token_service


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str


class JwtStrategy:
    name = "jwt"

    def authenticate(self, request) -> Principal:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            raise AuthError("Authentication required")

        token = auth_header.split(" ", 1)[1].strip()
        claims = token_service.decode_token(token, token_service.TOKEN_TYPE_ACCESS)
        return Principal(user_id=claims["sub"], role=claims.get("role"))


class TrustedHeaderStrategy:
    name = "trusted-header"

    def authenticate(self, request) -> Principal:
        raw_id = request.headers.get("X-User-Id")
        role = (request.headers.get("X-User-Role") or "").strip().upper()
        if not raw_id:
            raise AuthError("Authentication required")
        try:
            user_id = int(raw_id)
        except ValueError:
            raise AuthError("Invalid X-User-Id header")
        if role not in ROLES:
            raise AuthError("Invalid X-User-Role header")
        return Principal(user_id=user_id, role=role)


STRATEGIES = {
    JwtStrategy.name: JwtStrategy,
    TrustedHeaderStrategy.name: TrustedHeaderStrategy,
}


def build_strategy(config):
    name = (config.get("AUTH_STRATEGY") or JwtStrategy.name).strip().lower()
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise RuntimeError(f"Unknown AUTH_STRATEGY: {name!r} (expected one of {', '.join(STRATEGIES)})")
