# routers/portfolio_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from schemas.pnl import PnlResponse
from schemas.portfolio_summary import PortfolioSummaryResponse
from services.pnl_service import get_pnl
from services.portfolio_summary import get_portfolio_summary

router = APIRouter()


@router.get("/pnl", response_model=PnlResponse)
def portfolio_pnl(
    asset_id: Optional[int] = Query(None),
    include_zero_positions: bool = Query(False),
    db: Session = Depends(get_db),
):
    return get_pnl(db, asset_id=asset_id, include_zero_positions=include_zero_positions)


@router.get("/summary", response_model=PortfolioSummaryResponse)
def portfolio_summary(db: Session = Depends(get_db)):
    return get_portfolio_summary(db)
