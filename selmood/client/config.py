from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_LOGIN_TIMEOUT_MS = 1500
DEFAULT_SUBMIT_TIMEOUT_MS = 800
DEFAULT_FETCH_TIMEOUT_MS = 2000


@dataclass(frozen=True)
class ClientConfig:
    api_url: str
    local_store_path: str

    # Per-operation remote bounds. Submit is the shortest since it runs once per question.
    login_timeout_ms: int = DEFAULT_LOGIN_TIMEOUT_MS
    submit_timeout_ms: int = DEFAULT_SUBMIT_TIMEOUT_MS
    fetch_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS

    log_level: str = "INFO"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name, default)
    if v is None:
        return None
    v = v.strip()
    return v if v else None


def _getenv_int(name: str, default: int) -> int:
    v = _getenv(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def resolve_local_store_path() -> str:
    store_env = _getenv("SELMOOD_LOCAL_STORE_PATH") or ""
    store_path = Path(store_env) if store_env else (REPO_ROOT / "sel_local_storage.json")
    if not store_path.is_absolute():
        store_path = REPO_ROOT / store_path
    return str(store_path)


def get_config() -> ClientConfig:
    """
    Centralized client config: the only place the client reads env vars.
    Loads `.env` from the repo root if present.
    """
    load_dotenv(REPO_ROOT / ".env", override=False)

    return ClientConfig(
        api_url=(_getenv("SELMOOD_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL).rstrip("/"),
        local_store_path=resolve_local_store_path(),
        login_timeout_ms=_getenv_int("SELMOOD_LOGIN_TIMEOUT_MS", DEFAULT_LOGIN_TIMEOUT_MS),
        submit_timeout_ms=_getenv_int("SELMOOD_SUBMIT_TIMEOUT_MS", DEFAULT_SUBMIT_TIMEOUT_MS),
        fetch_timeout_ms=_getenv_int("SELMOOD_FETCH_TIMEOUT_MS", DEFAULT_FETCH_TIMEOUT_MS),
        log_level=(_getenv("SELMOOD_LOG_LEVEL", "INFO") or "INFO").upper(),
    )
