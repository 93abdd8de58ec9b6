# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import settings
from config.logging_config import configure_logging
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.assets_routes import router as assets_router
from routers.assets_routes import types_router as asset_types_router
from routers.custodians_routes import router as custodians_router
from routers.portfolio_routes import router as portfolio_router
from routers.positions_routes import router as positions_router
from routers.sync_routes import router as sync_router
from routers.transactions_routes import router as transactions_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Portfolio Tracker")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = [o.strip() for o in settings.CORS_ORIGIN.split(",") if o.strip()]

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sync_router, prefix="/api/sync", tags=["sync"])
app.include_router(portfolio_router, prefix="/api/portfolio", tags=["portfolio"])
app.include_router(positions_router, prefix="/api/positions", tags=["positions"])
app.include_router(transactions_router, prefix="/api/transactions", tags=["transactions"])
app.include_router(assets_router, prefix="/api/assets", tags=["assets"])
app.include_router(asset_types_router, prefix="/api/asset-types", tags=["assets"])
app.include_router(custodians_router, prefix="/api/custodians", tags=["custodians"])


@app.get("/health")
def health():
    return {"status": "ok"}


# Schema is owned by alembic; SQLite (local dev, tests) gets create_all for convenience.
from database import Base, DATABASE_URL, engine  # noqa: E402
import models  # noqa: E402, F401

if DATABASE_URL.startswith("sqlite"):
    Base.metadata.create_all(bind=engine)
    logger.info("SQLite schema ensured via create_all")
