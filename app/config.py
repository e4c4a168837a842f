import logging
import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "app" / "data"

_env_path = BASE_DIR / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path, override=False)


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ── Caregiver store ─────────────────────────────────────────────────────────
CAREGIVER_DB_URL = os.getenv("CAREGIVER_DB_URL", "").strip()
CAREGIVER_SEED_PATH = Path(os.getenv("CAREGIVER_SEED_PATH", str(DATA_DIR / "caregivers.json")))
STORE_TIMEOUT_SECONDS = _float_env("STORE_TIMEOUT_SECONDS", 5.0)

# ── LLM text completion (OpenAI-compatible, Groq by default) ────────────────
LLM_API_KEY = os.getenv("LLM_API_KEY", "").strip()
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1")
LLM_TIMEOUT_SECONDS = _float_env("LLM_TIMEOUT_SECONDS", 5.0)

# ── Matching ────────────────────────────────────────────────────────────────
MATCH_PAGE_SIZE = _int_env("MATCH_PAGE_SIZE", 10)
SEARCH_TARGET_COUNT = _int_env("SEARCH_TARGET_COUNT", 10)
BIO_TERM_LIMIT = _int_env("BIO_TERM_LIMIT", 3)
INTENT_CACHE_TTL_SECONDS = _int_env("INTENT_CACHE_TTL_SECONDS", 30)

# ── Scoring weights ─────────────────────────────────────────────────────────
SCORE_OVERLAP_WEIGHT = _float_env("SCORE_OVERLAP_WEIGHT", 35.0)
SCORE_PROVIDER_WEIGHT = _float_env("SCORE_PROVIDER_WEIGHT", 20.0)
SCORE_EXPERIENCE_CAP = _float_env("SCORE_EXPERIENCE_CAP", 20.0)
SCORE_RATING_CAP = _float_env("SCORE_RATING_CAP", 15.0)
SCORE_VERIFIED_WEIGHT = _float_env("SCORE_VERIFIED_WEIGHT", 10.0)
SCORE_NEAR_BONUS = _float_env("SCORE_NEAR_BONUS", 10.0)
SCORE_MID_BONUS = _float_env("SCORE_MID_BONUS", 5.0)
SCORE_NEAR_KM = _float_env("SCORE_NEAR_KM", 5.0)
SCORE_MID_KM = _float_env("SCORE_MID_KM", 15.0)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
