from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from shared.config.database import get_db
from shared.security.dependencies import verify_internal_api_key
from .schemas import PhoneLookupRequest
from .service import RiskService, get_risk_service

logger = structlog.get_logger(__name__)

# Admin back-office only
router = APIRouter(dependencies=[Depends(verify_internal_api_key)])
public_router = APIRouter()


@public_router.get("/risk/health", include_in_schema=False)
async def health_check():
    return {"service": "risk", "status": "running"}


def _phone_required():
    return JSONResponse(status_code=400, content={"error": "Phone number is required"})


@router.post("/customer-history")
async def customer_history(
    payload: PhoneLookupRequest,
    db: AsyncSession = Depends(get_db),
    service: RiskService = Depends(get_risk_service),
):
    if not payload.phone:
        return _phone_required()
    try:
        return await service.customer_history(db, payload.phone)
    except SQLAlchemyError:
        logger.exception("customer_history_failed")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch customer history"})


@router.post("/combined-courier-history")
async def combined_courier_history(
    payload: PhoneLookupRequest,
    db: AsyncSession = Depends(get_db),
    service: RiskService = Depends(get_risk_service),
):
    if not payload.phone:
        return _phone_required()
    return await service.combined_history(db, payload.phone)


@router.post("/courier-history")
async def courier_history(
    payload: PhoneLookupRequest,
    service: RiskService = Depends(get_risk_service),
):
    if not payload.phone:
        return _phone_required()
    if not service.courier.configured:
        return JSONResponse(status_code=400, content={"error": "Courier API key not configured"})
    return await service.courier_history(payload.phone)
