"""
Feature flags, paths, thresholds and Supabase credentials.
All resolution relative to the backend directory.
"""
import os
import logging
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# backend/labelcheck/config.py -> parent=labelcheck, parent.parent=backend, parent.parent.parent=repo
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_REPO_ROOT = _BACKEND_DIR.parent

load_dotenv(_BACKEND_DIR / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("CONFIG invalid float %s=%r; using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("CONFIG invalid int %s=%r; using %s", name, raw, default)
        return default


# --- Data paths ---
def get_dietary_rules_path() -> Path:
    override = os.environ.get("DIETARY_RULES_PATH", "").strip()
    if override:
        return Path(override)
    return _REPO_ROOT / "data" / "dietary_rules.json"


# --- Supabase (lazy read from env) ---
def get_supabase_url() -> str:
    return (os.environ.get("SUPABASE_URL") or os.environ.get("NEXT_PUBLIC_SUPABASE_URL") or "").strip()


def get_supabase_key() -> str:
    return (
        os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        or os.environ.get("NEXT_PUBLIC_SUPABASE_ANON_KEY")
        or ""
    ).strip()


# --- Vision model ---
def get_openai_model() -> str:
    return os.environ.get("OPENAI_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"


# --- Pipeline thresholds ---
DEFAULT_LOW_CONFIDENCE_THRESHOLD = 0.7


def get_low_confidence_threshold() -> float:
    return _env_float("LOW_CONFIDENCE_THRESHOLD", DEFAULT_LOW_CONFIDENCE_THRESHOLD)


def get_synonym_min_similarity() -> float:
    return _env_float("SYNONYM_MIN_SIMILARITY", 0.3)


def get_synonym_match_limit() -> int:
    return _env_int("SYNONYM_MATCH_LIMIT", 5)


def get_synonym_fuzzy_enabled() -> bool:
    return _env_bool("SYNONYM_FUZZY_ENABLED", "true")


# --- Startup logging ---
def log_config() -> None:
    logger.info(
        "CONFIG: supabase_url=%s supabase_key=%s openai_model=%s low_confidence=%.2f "
        "synonym_min_similarity=%.2f synonym_limit=%d synonym_fuzzy=%s dietary_rules=%s",
        bool(get_supabase_url()), bool(get_supabase_key()), get_openai_model(),
        get_low_confidence_threshold(), get_synonym_min_similarity(),
        get_synonym_match_limit(), get_synonym_fuzzy_enabled(),
        get_dietary_rules_path().exists(),
    )
