# backend/pharmapos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Returns are accepted for this many days after the sale date
    RETURN_WINDOW_DAYS = int(os.environ.get("RETURN_WINDOW_DAYS", "7"))

    # Max rows returned by the receipt search used by the return desk
    SALE_LOOKUP_LIMIT = int(os.environ.get("SALE_LOOKUP_LIMIT", "10"))

    # One loyalty point per this much of a sale's total amount
    LOYALTY_POINT_DIVISOR = int(os.environ.get("LOYALTY_POINT_DIVISOR", "100"))

    # Allowed drift between a row's total and quantity x unit price
    PRICE_TOLERANCE = os.environ.get("PRICE_TOLERANCE", "0.01")

    # Customers keep accrued points on returned goods unless enabled
    REVERSE_LOYALTY_ON_RETURN = _env_flag("REVERSE_LOYALTY_ON_RETURN")

    # Callable returning a CurrentUser (or None) for the active request
    CURRENT_USER_LOADER = None

    # Front-end origins allowed to call the API from a browser
    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]
