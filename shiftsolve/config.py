import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from current CWD and, additionally, from the project root (two-pass)
load_dotenv()
try:
    _proj_root = Path(__file__).resolve().parents[1]
    _dotenv_path = _proj_root / ".env"
    if _dotenv_path.exists():
        # don't override already set env vars
        load_dotenv(dotenv_path=str(_dotenv_path), override=False)
except OSError:
    pass


def _clean(raw: str | None) -> str:
    return (raw or "").replace("\"", "").replace("'", "").strip()


def _base_url(name: str, default: str) -> str:
    raw = _clean(os.getenv(name)) or default
    if raw.startswith("ttps://"):
        raw = "h" + raw
    if not raw.startswith("http"):
        raw = "https://" + raw.lstrip(":/")
    return raw.rstrip("/")


def _number(name: str, default: float) -> float:
    raw = _clean(os.getenv(name))
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


SOLVER_BASE_URL = _base_url("SOLVER_BASE_URL", "http://localhost:8080")
RECORDS_BASE_URL = _base_url("RECORDS_BASE_URL", "http://localhost:54321/rest/v1")
RECORDS_API_KEY = _clean(os.getenv("RECORDS_API_KEY")) or None

SOLVER_POLL_DELAY = _number("SOLVER_POLL_DELAY", 1.0)
SOLVER_MAX_ATTEMPTS = int(_number("SOLVER_MAX_ATTEMPTS", 30))
HTTP_TIMEOUT = _number("HTTP_TIMEOUT", 30.0)
RECORD_CACHE_TTL = _number("RECORD_CACHE_TTL", 300.0)

LOG_LEVEL = (_clean(os.getenv("LOG_LEVEL")) or "INFO").upper()
