# routers/sync_routes.py
import logging
import uuid
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from config import settings
from database import SessionLocal, get_db
from middleware.rate_limit import limiter
from schemas.sync import LastSyncResponse, StockSyncResponse, SyncJobAccepted, SyncResponse
from services.sync.reconciliation import BalanceProvider
from services.sync.sync_service import get_balance_provider, sync_all_wallets
from services.yahoo_service import YahooPriceService, sync_stock_prices

logger = logging.getLogger(__name__)

router = APIRouter()

# Single-process record of the most recent portfolio sync job.
_last_job: Dict[str, Any] = {"jobId": None, "status": "never_run", "result": None}


def get_price_service() -> YahooPriceService:
    return YahooPriceService()


def last_sync_state() -> Dict[str, Any]:
    return dict(_last_job)


def reset_last_sync_state() -> None:
    _last_job.update({"jobId": None, "status": "never_run", "result": None})


async def _run_sync_job(job_id: str, provider: BalanceProvider) -> None:
    """Background variant: owns its session since the request's is closed by now."""
    _last_job.update({"jobId": job_id, "status": "running", "result": None})
    db = SessionLocal()
    try:
        result = await sync_all_wallets(db, provider)
        _last_job.update({"status": "completed", "result": result})
    except Exception:
        logger.exception("Background portfolio sync %s crashed", job_id)
        _last_job.update({"status": "failed", "result": None})
    finally:
        db.close()


@router.post("/portfolio", response_model=Union[SyncResponse, SyncJobAccepted])
@limiter.limit(settings.RATE_LIMIT_SYNC)
async def sync_portfolio(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    background: bool = Query(False),
    db: Session = Depends(get_db),
    provider: BalanceProvider = Depends(get_balance_provider),
):
    job_id = uuid.uuid4().hex
    if background:
        _last_job.update({"jobId": job_id, "status": "queued", "result": None})
        background_tasks.add_task(_run_sync_job, job_id, provider)
        response.status_code = status.HTTP_202_ACCEPTED
        logger.info("Portfolio sync %s queued", job_id)
        return {"jobId": job_id, "status": "queued"}

    _last_job.update({"jobId": job_id, "status": "running", "result": None})
    result = await sync_all_wallets(db, provider)
    _last_job.update({"status": "completed", "result": result})
    return result


@router.get("/portfolio/last", response_model=LastSyncResponse)
def last_portfolio_sync():
    return last_sync_state()


@router.post("/stocks", response_model=StockSyncResponse)
@limiter.limit(settings.RATE_LIMIT_SYNC)
async def sync_stocks(
    request: Request,
    db: Session = Depends(get_db),
    service: YahooPriceService = Depends(get_price_service),
    rate_limit_ms: Optional[int] = Query(None, ge=0),
):
    return await sync_stock_prices(db, service, rate_limit_ms=rate_limit_ms)
