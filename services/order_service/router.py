from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from shared.config.database import get_db
from shared.config.settings import PLACE_ORDER_RATE_LIMIT
from shared.security import limiter
from .exceptions import OrderError
from .notifications import NotificationDispatcher, get_dispatcher
from .schemas import PlaceOrderRequest, PlaceOrderResponse
from .service import OrderService

logger = structlog.get_logger(__name__)

# Public: guest checkout has no authentication
router = APIRouter()


@router.get("/orders/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.post("/place-order", response_model=PlaceOrderResponse)
@limiter.limit(PLACE_ORDER_RATE_LIMIT)
async def place_order(
    request: Request,                   # REQUIRED: slowapi needs this to key by IP
    payload: PlaceOrderRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    try:
        response, notice = await OrderService.place_order(db, payload)
    except OrderError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_body())
    except Exception:
        logger.exception("place_order_failed")
        return JSONResponse(status_code=500, content={"error": "Failed to place order"})

    # Order is committed; side effects run detached from this response
    dispatcher.dispatch_order_placed(notice)
    return response
