"""
Runtime settings read from the environment (.env supported).

Everything here is a plain module-level constant so services can import
what they need without a settings object.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ─── Zapper (wallet balances) ──────────────────────────────────────
ZAPPER_API_URL = os.getenv("ZAPPER_API_URL", "https://public.zapper.xyz/graphql")
ZAPPER_API_KEY = os.getenv("ZAPPER_API_KEY") or None
ZAPPER_TIMEOUT_S = _float_env("ZAPPER_TIMEOUT_S", 30.0)
ZAPPER_CACHE_TTL_S = _int_env("ZAPPER_CACHE_TTL_S", 90)
ZAPPER_SOURCE = "zapper"

# ─── Yahoo Finance (listed securities) ─────────────────────────────
YAHOO_SOURCE = "yahoofinance"
YAHOO_RATE_LIMIT_MS = _int_env("YAHOO_RATE_LIMIT_MS", 500)

# ─── Sync ──────────────────────────────────────────────────────────
SYNC_RATE_LIMIT_MS = _int_env("SYNC_RATE_LIMIT_MS", 1000)

# ─── HTTP ──────────────────────────────────────────────────────────
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:5173")
RATE_LIMIT_SYNC = os.getenv("RATE_LIMIT_SYNC", "6/minute")
