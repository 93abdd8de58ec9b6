"""
Alembic environment for the portfolio schema.

The URL comes from DATABASE_URL (after .env is loaded), never from
alembic.ini. Metadata is database.Base with every model in models/ imported.
"""
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

_url = os.getenv("DATABASE_URL")
if _url:
    # configparser treats % as interpolation
    config.set_main_option("sqlalchemy.url", _url.replace("%", "%%"))

from database import Base  # noqa: E402
from models import Asset, Custodian, Position, PriceHistory, Transaction  # noqa: E402, F401

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    _configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=(url or "").startswith("sqlite"),
    )


def run_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")


if context.is_offline_mode():
    run_offline()
else:
    run_online()
