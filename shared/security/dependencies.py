from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader
import structlog
from .api_key import verify_api_key

logger = structlog.get_logger(__name__)

INTERNAL_KEY_HEADER = "X-Internal-API-Key"

back_office_key = APIKeyHeader(name=INTERNAL_KEY_HEADER, auto_error=False)


async def verify_internal_api_key(api_key: Optional[str] = Depends(back_office_key)) -> bool:
    """Rejects risk lookups that do not come from the admin back-office."""
    if verify_api_key(api_key):
        return True
    logger.warning("back_office_key_rejected", key_present=bool(api_key))
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Invalid or missing {INTERNAL_KEY_HEADER} header",
    )
