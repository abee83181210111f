"""Application settings read from the environment."""

from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_environment(root: Optional[Path] = None) -> None:
    """Load ``.env.local`` then ``.env``; values already set are never overwritten."""
    root = Path(root or Path.cwd())
    load_dotenv(root / ".env.local")
    load_dotenv(root / ".env")


def build_config(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    env_name = os.getenv("BUDGETY_ENV", "prod").lower()
    secret_key = os.getenv("SECRET_KEY")
    if not secret_key:
        logger.warning("SECRET_KEY is not set; sessions will not survive a restart")
        secret_key = secrets.token_hex(16)

    config: Dict[str, Any] = {
        "SECRET_KEY": secret_key,
        "BUDGETY_ENV": env_name,
        "BUDGETY_ALLOWED_ORIGINS": os.getenv("BUDGETY_ALLOWED_ORIGINS", ""),
        "BUDGETY_DATA_DIR": os.getenv("BUDGETY_DATA_DIR", "data"),
        "BUDGETY_BASE_URL": os.getenv("BUDGETY_BASE_URL", "http://localhost:5000"),
        "SQLALCHEMY_DATABASE_URI": os.getenv("DATABASE_URL", "sqlite:///budgety.db"),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "MAILERSEND_API_KEY": os.getenv("MAILERSEND_API_KEY", ""),
        "MAILERSEND_FROM_EMAIL": os.getenv("MAILERSEND_FROM_EMAIL", "noreply@budgety.app"),
        "MAILERSEND_FROM_NAME": os.getenv("MAILERSEND_FROM_NAME", "Budgety"),
        # Seconds.
        "VERIFICATION_LINK_TTL": 3600,
        "OTP_TTL": 600,
        "OTP_ALLOWED_ATTEMPTS": 3,
    }
    if overrides:
        config.update(overrides)
    return config
