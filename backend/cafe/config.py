# backend/cafe/config.py
from __future__ import annotations
import os


def _csv(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cafe.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cafe.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # "jwt" for bearer tokens, "trusted-header" for X-User-Id / X-User-Role
    # behind a gateway that already authenticated the caller (local dev only)
    AUTH_STRATEGY = os.environ.get("AUTH_STRATEGY", "jwt")

    JWT_SECRET = os.environ.get("JWT_SECRET", "changeThisAccessSecret")
    JWT_REFRESH_SECRET = os.environ.get("JWT_REFRESH_SECRET", "changeThisRefreshSecret")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_ACCESS_EXPIRES_MINUTES = int(os.environ.get("JWT_ACCESS_EXPIRES_MINUTES", "60"))
    JWT_REFRESH_EXPIRES_DAYS = int(os.environ.get("JWT_REFRESH_EXPIRES_DAYS", "7"))

    # Loyalty: one point per REWARD_POINT_VALUE currency units, rounded down
    REWARD_POINT_VALUE = int(os.environ.get("REWARD_POINT_VALUE", "1000"))
    WALK_IN_CUSTOMER_NAME = os.environ.get("WALK_IN_CUSTOMER_NAME", "Khách vãng lai")

    CORS_ALLOWED_ORIGINS = _csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))
