"""
Environment variable loading for Stakewatch.

- Loads .env from project root when available.
- Tracked stake authorities (key -> authority pubkey + label).
- Stake program id used by the account-index collaborator.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is stakewatch/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

STAKE_PROGRAM_ID = "Stake11111111111111111111111111111111111111"

DEFAULT_AUTHORITIES: dict[str, dict[str, str]] = {
    "firep": {
        "authority": "FiRep26iRQbMaKbqhhs5CqXqy7YrHn462LbnQhXzB2ps",
        "label": "SFDP Main (FiRep)",
    },
    "mpa4": {
        "authority": "mpa4abUkjQoAvPzREkh5Mo75hZhPFQ2FSH6w7dWKuQ5",
        "label": "SFDP Matching/Residual (mpa4)",
    },
}


def load_stakewatch_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def get_env_str(name: str, default: str | None = None) -> str | None:
    """Return a stripped env value; empty strings fall back to default."""
    load_stakewatch_env()
    raw = (os.getenv(name) or "").strip()
    return raw or default


def get_env_float(name: str, default: float) -> float:
    """Return env value as float; raise ValueError naming the variable if malformed."""
    raw = get_env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def get_env_int(name: str, default: int) -> int:
    """Return env value as int; raise ValueError naming the variable if malformed."""
    raw = get_env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_project_root() -> Path:
    return _ROOT
