import asyncio
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from shared.config.settings import RISK_CACHE_TTL_SECONDS
from shared.observability import storefront_risk_cache_total
from services.order_service.phone import normalize
from .cache import CacheBackend, InMemoryTTLCache
from .courier import CourierClient
from .history import CustomerHistory, RiskSummary, worse_tier

logger = structlog.get_logger(__name__)

COMBINED_HISTORY_LIMIT = 100


class RiskService:
    def __init__(self, cache: CacheBackend, courier: CourierClient):
        self.cache = cache
        self.courier = courier

    async def _cached(self, key: str):
        value = await self.cache.get(key)
        storefront_risk_cache_total.labels(result="hit" if value is not None else "miss").inc()
        return value

    async def customer_history(self, db: AsyncSession, raw_phone: str) -> dict:
        data = await CustomerHistory.lookup(db, raw_phone)
        return {"success": True, "data": data}

    async def _internal_summary(self, db: AsyncSession, phone: str) -> dict:
        try:
            history = await CustomerHistory.lookup(db, phone, limit=COMBINED_HISTORY_LIMIT)
        except SQLAlchemyError as e:
            logger.error("internal_history_failed", error=repr(e))
            return RiskSummary().to_dict()
        return history["summary"]

    async def combined_history(self, db: AsyncSession, raw_phone: str) -> dict:
        phone = normalize(raw_phone)
        cache_key = f"combined_{phone}"
        cached = await self._cached(cache_key)
        if cached is not None:
            return {**cached, "cached": True}

        lookup, internal = await asyncio.gather(
            self.courier.lookup(phone),
            self._internal_summary(db, phone),
        )

        result = {
            "phone": phone,
            "internal": internal,
            "bd_courier": None,
            "bd_courier_available": False,
            "combined_risk_level": internal["risk_level"],
        }
        if lookup.available:
            result["bd_courier"] = lookup.snapshot.to_dict()
            result["bd_courier_available"] = True
            result["combined_risk_level"] = worse_tier(internal["risk_level"], lookup.snapshot.risk_tier())
        elif lookup.outcome != "not_configured":
            result.update(lookup.flags())

        # A transient upstream failure should not pin the degraded answer for the whole TTL
        if not lookup.transient:
            await self.cache.set(cache_key, result)
        return {**result, "cached": False}

    async def courier_history(self, raw_phone: str) -> dict:
        phone = normalize(raw_phone)
        cache_key = f"courier_{phone}"
        cached = await self._cached(cache_key)
        if cached is not None:
            return {"success": True, "data": cached, "cached": True}

        lookup = await self.courier.lookup(phone)
        if not lookup.available:
            return {"success": False, **lookup.flags(), "message": lookup.message}

        data = lookup.snapshot.to_dict()
        await self.cache.set(cache_key, data)
        return {"success": True, "data": data}


risk_cache = InMemoryTTLCache(RISK_CACHE_TTL_SECONDS)
risk_service = RiskService(risk_cache, CourierClient())


def get_risk_service() -> RiskService:
    return risk_service
