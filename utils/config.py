# utils/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


API_BASE_URL = os.getenv("BOOKWISE_API_BASE_URL", "").strip()
API_TIMEOUT = _env_float("BOOKWISE_API_TIMEOUT", 10.0)
HTTP_RETRIES = _env_int("BOOKWISE_HTTP_RETRIES", 3)

SEARCH_DEBOUNCE_SECONDS = _env_int("SEARCH_DEBOUNCE_MS", 300) / 1000.0
SEARCH_MIN_CHARS = _env_int("SEARCH_MIN_CHARS", 2)
SEARCH_LIMIT = _env_int("SEARCH_LIMIT", 10)
SUGGEST_LIMIT = _env_int("SUGGEST_LIMIT", 5)

# max-age windows, after which a settled value is served stale
SEARCH_STALE_SECONDS = _env_float("SEARCH_STALE_SECONDS", 5 * 60)
SUGGEST_STALE_SECONDS = _env_float("SUGGEST_STALE_SECONDS", 60)
DETAIL_STALE_SECONDS = _env_float("DETAIL_STALE_SECONDS", 10 * 60)
HISTORY_STALE_SECONDS = _env_float("HISTORY_STALE_SECONDS", 60 * 60)
CACHE_TTL_SECONDS = _env_float("CACHE_TTL_SECONDS", 5 * 60)

PRICE_HISTORY_DAYS = _env_int("PRICE_HISTORY_DAYS", 90)
MOCK_LATENCY_SECONDS = _env_int("MOCK_LATENCY_MS", 0) / 1000.0


def use_mock_data():
    """Return True when no backend URL is configured and sample data should be served."""
    return not API_BASE_URL
