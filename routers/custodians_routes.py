# routers/custodians_routes.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.custodians import CustodianCreate, CustodianCreateResponse, CustodiansListResponse
from services.custodians_service import create_custodian, list_custodians

router = APIRouter()


@router.get("", response_model=CustodiansListResponse)
def get_custodians(db: Session = Depends(get_db)):
    return list_custodians(db)


@router.post("", response_model=CustodianCreateResponse, status_code=status.HTTP_201_CREATED)
def post_custodian(payload: CustodianCreate, db: Session = Depends(get_db)):
    return create_custodian(
        db,
        name=payload.name,
        type=payload.type,
        wallet_address=payload.wallet_address,
    )
