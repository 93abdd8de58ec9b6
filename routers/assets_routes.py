# routers/assets_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.assets import AssetCreate, AssetCreateResponse, AssetsListResponse, AssetTypesListResponse
from services.assets_service import create_asset, list_asset_types, list_assets

router = APIRouter()
types_router = APIRouter()


@router.get("", response_model=AssetsListResponse)
def get_assets(
    asset_type: Optional[str] = Query(None),
    price_source: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return list_assets(db, asset_type=asset_type, price_source=price_source)


@router.post("", response_model=AssetCreateResponse, status_code=status.HTTP_201_CREATED)
def post_asset(payload: AssetCreate, db: Session = Depends(get_db)):
    return create_asset(
        db,
        symbol=payload.symbol,
        name=payload.name,
        asset_type=payload.asset_type,
        price_source=payload.price_source,
        api_identifier=payload.api_identifier,
    )


@types_router.get("", response_model=AssetTypesListResponse)
def get_asset_types(db: Session = Depends(get_db)):
    return list_asset_types(db)
