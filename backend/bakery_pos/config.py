# backend/bakery_pos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Record store backend: memory, csv or sql
    STORE_BACKEND = os.environ.get("POS_STORE_BACKEND", "csv")
    CSV_DATA_DIR = os.environ.get("POS_CSV_DATA_DIR", "data")

    # Only used by the sql backend
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///bakery_pos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_SCHEMA = _env_flag("POS_AUTO_CREATE_SCHEMA", True)

    SEED_ON_STARTUP = _env_flag("POS_SEED_ON_STARTUP", True)
    SEED_SAMPLE_DATA = _env_flag("POS_SEED_SAMPLE_DATA", True)

    BCRYPT_ROUNDS = int(os.environ.get("POS_BCRYPT_ROUNDS", "12"))

    # Fail the whole settlement when a cart line points at a deleted product
    STRICT_STOCK_REFERENCES = _env_flag("POS_STRICT_STOCK_REFERENCES", False)

    LOG_LEVEL = os.environ.get("POS_LOG_LEVEL", "INFO")

    CORS_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:5000",
        "http://127.0.0.1:5000",
    }
