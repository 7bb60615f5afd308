"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Display ──────────────────────────────────────────────────────────
MAX_PREVIEW_ROWS = 20
DEFAULT_FIELD_PLACEHOLDER = "-"

# ── Tables ───────────────────────────────────────────────────────────
USERS_TABLE = "users"
KIDS_TABLE = "kids"

# ── API server ───────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = 24
MAX_RESULTS_RETURN = 1000


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
