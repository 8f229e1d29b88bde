# /coursemenu/config.py
"""
Centralized configuration for the course command menu.
Includes suggestion tuning, selection policy, fetch settings, and paths.
"""
import os
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from .observability import configure_logging

# ==============================================================================
# CONSOLE & ENVIRONMENT
# ==============================================================================
console = Console()
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return max(float(minimum), value)


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    raw = str(os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


# ==============================================================================
# GLOBAL CONFIGURATION
# ==============================================================================
# --- Mention / Suggestion Tuning ---
MENTION_MARKER = (os.getenv("MENTION_MARKER") or "@")[:1]
SUGGESTION_DEBOUNCE_MS = _env_int("SUGGESTION_DEBOUNCE_MS", 300, minimum=0)
SUGGESTION_MIN_TOKEN_CHARS = _env_int("SUGGESTION_MIN_TOKEN_CHARS", 2, minimum=1)
# False keeps overlapping debounced computations alive; True lets only the newest apply.
SUGGESTION_DISCARD_STALE = _env_bool("SUGGESTION_DISCARD_STALE", False)

# --- Selection ---
SELECTION_POLICY = _env_choice("SELECTION_POLICY", "multi", {"multi", "single"})

# --- Document Fetching ---
FETCH_TIMEOUT_S = _env_float("FETCH_TIMEOUT_S", 30.0, minimum=1.0)
# Share one download between concurrent cache misses for the same entity id.
FETCH_COALESCE_INFLIGHT = _env_bool("FETCH_COALESCE_INFLIGHT", False)

# --- Path Configuration ---
# Data directory is at ../../data relative to this file (src/coursemenu/config.py)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
_DATA_DIR = _BASE_DIR / "data"

CATALOG_PATH = Path(os.getenv("CATALOG_PATH", str(_DATA_DIR / "catalog.json")))
CACHE_DIR = Path(os.getenv("CACHE_DIR", str(_DATA_DIR / "runtime_cache")))
CACHE_DB_PATH = Path(os.getenv("CACHE_DB_PATH", str(CACHE_DIR / "document_cache.sqlite")))
METRICS_DIR = Path(os.getenv("METRICS_DIR", str(CACHE_DIR / "metrics")))

# --- Create necessary directories ---
CACHE_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH = Path(os.getenv("LOG_PATH", str(CACHE_DIR / "app.log")))
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
configure_logging(LOG_PATH)
