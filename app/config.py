"""
Configuration module for the FraudGate service.

Centralizes all configuration with environment variable support
and validation.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("FRAUDGATE_ENV", "dev")  # dev|stage|prod

# Storage
DB_PATH = os.getenv("FRAUDGATE_DB_PATH", "data/fraudgate.db")
ARTIFACT_STORE_BACKEND = os.getenv("ARTIFACT_STORE_BACKEND", "local")  # local|s3
ARTIFACT_DIR = os.getenv("ARTIFACT_DIR", "data/artifacts")
S3_BUCKET = os.getenv("S3_BUCKET", "")
S3_PREFIX = os.getenv("S3_PREFIX", "fraudgate/evidence/")
AWS_REGION = os.getenv("AWS_REGION", "")

# Client redirect for banned users
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")
BLACKLIST_REDIRECT = CLIENT_URL.rstrip("/") + "/blacklisted"

# Request handling
TRUST_PROXY = os.getenv("TRUST_PROXY", "").lower() in ("1", "true", "yes")
ADMIN_ROUTE_PREFIX = "/api/admin"
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
ADMIN_SECRET = os.getenv("ADMIN_SECRET", "")

# Access cache sizing
ACCESS_CACHE_MAX_ENTRIES = int(os.getenv("ACCESS_CACHE_MAX_ENTRIES", "5000"))
ACCESS_CACHE_TTL_SECONDS = float(os.getenv("ACCESS_CACHE_TTL_SECONDS", "3600"))

# Verification
FRAUD_CONFIDENCE_THRESHOLD = float(os.getenv("FRAUD_CONFIDENCE_THRESHOLD", "0.8"))
CLASSIFIER_TIMEOUT_SECONDS = float(os.getenv("CLASSIFIER_TIMEOUT_SECONDS", "15"))
CLASSIFIER_WORKERS = int(os.getenv("CLASSIFIER_WORKERS", "8"))
ORIGIN_HASH_SALT = os.getenv("ORIGIN_HASH_SALT", "")

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# Telegram
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID", "")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("LOG_FILE") or None


def load_payment_addresses() -> Dict[str, str]:
    """
    Load the authorized payment destinations, e.g. {"btc": "bc1...", "ton": "UQ..."}.

    Read from PAYMENT_ADDRESSES (JSON object). Malformed values yield {}.
    """
    raw = os.getenv("PAYMENT_ADDRESSES", "")
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): str(v) for k, v in data.items()}


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, Any]:
    """
    Report which integrations are configured.
    Returns dict of integration -> configured.
    """
    checks = {
        "database_dir": Path(DB_PATH).parent.exists() or not Path(DB_PATH).parent.parts,
        "classifier": bool(GEMINI_API_KEY),
        "notifications": bool(TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID),
        "admin_secret": bool(ADMIN_SECRET),
    }
    if ARTIFACT_STORE_BACKEND == "s3":
        checks["artifact_store"] = bool(S3_BUCKET)
    else:
        checks["artifact_store"] = True
    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("FRAUDGATE_DEBUG", "").lower() in ("1", "true", "yes")


def effective_log_level() -> str:
    """LOG_LEVEL, forced to DEBUG when FRAUDGATE_DEBUG is set."""
    return "DEBUG" if is_debug() else LOG_LEVEL


def require_production_secrets() -> None:
    """
    Refuse to start in prod without the secrets that protect admin routes
    and stored origin hashes.

    Raises:
        RuntimeError: If FRAUDGATE_ENV=prod and a required secret is empty
    """
    if not is_production():
        return
    missing = [
        name for name, value in (("ADMIN_SECRET", ADMIN_SECRET), ("ORIGIN_HASH_SALT", ORIGIN_HASH_SALT))
        if not value
    ]
    if missing:
        raise RuntimeError(f"{', '.join(missing)} must be set when FRAUDGATE_ENV=prod")
