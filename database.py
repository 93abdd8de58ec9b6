# database.py
"""
Engine, session factory and the `get_db` request dependency.

DATABASE_URL is required. Postgres gets a tuned QueuePool; SQLite (local
runs, tests) is used as-is with cross-thread access enabled.
"""
import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

logger = logging.getLogger(__name__)

Base = declarative_base()

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set in the environment")


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
        "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        # recycle before managed Postgres drops idle connections
        "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "1800")),
        "pool_pre_ping": True,
    }


_options = _engine_options(DATABASE_URL)
engine = create_engine(DATABASE_URL, **_options)
logger.info(
    "DB engine ready (%s) %s",
    engine.dialect.name,
    {k: v for k, v in _options.items() if k != "connect_args"},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
