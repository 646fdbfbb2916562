from dataclasses import dataclass, asdict
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from services.order_service.phone import normalize, match_suffix, COUNTRY_PREFIX
from services.order_service.repository import OrderRepository

DELIVERED_STATUSES = {"delivered", "completed"}
CANCELLED_STATUSES = {"cancelled", "returned", "refunded", "return"}
PENDING_STATUSES = {"pending", "processing", "shipped", "in_transit", "on_hold"}

# Higher is worse
RISK_PRIORITY = {"new": 0, "low": 1, "medium": 2, "high": 3}

RECENT_ORDERS = 5


def tier_from_ratio(ratio: float) -> str:
    if ratio >= 80:
        return "low"
    if ratio >= 50:
        return "medium"
    return "high"


def risk_tier(total_orders: int, success_ratio: Optional[float]) -> str:
    # No completed orders yet tells us nothing, same as no orders at all
    if total_orders == 0 or success_ratio is None:
        return "new"
    return tier_from_ratio(success_ratio)


def worse_tier(a: str, b: Optional[str]) -> str:
    if b is None:
        return a
    return b if RISK_PRIORITY.get(b, 0) > RISK_PRIORITY.get(a, 0) else a


@dataclass
class RiskSummary:
    total_orders: int = 0
    delivered: int = 0
    cancelled: int = 0
    pending: int = 0
    success_ratio: Optional[float] = None
    total_spent: float = 0
    risk_level: str = "new"

    def to_dict(self) -> dict:
        return asdict(self)


def _status(order) -> str:
    return (order.status or "").lower()


def summarize(orders) -> RiskSummary:
    delivered = [o for o in orders if _status(o) in DELIVERED_STATUSES]
    cancelled = [o for o in orders if _status(o) in CANCELLED_STATUSES]
    pending = [o for o in orders if _status(o) in PENDING_STATUSES]

    completed = len(delivered) + len(cancelled)
    ratio = len(delivered) / completed * 100 if completed else None

    return RiskSummary(
        total_orders=len(orders),
        delivered=len(delivered),
        cancelled=len(cancelled),
        pending=len(pending),
        # Reported rounded; the tier uses the exact value
        success_ratio=round(ratio, 1) if ratio is not None else None,
        total_spent=sum(o.total or 0 for o in delivered),
        risk_level=risk_tier(len(orders), ratio),
    )


def phone_variants(normalized: str) -> list[str]:
    local = normalized[1:] if normalized.startswith("0") else normalized
    return [normalized, local, f"{COUNTRY_PREFIX}{local}", f"+{COUNTRY_PREFIX}{local}"]


class CustomerHistory:
    @staticmethod
    async def lookup(db: AsyncSession, raw_phone: str, limit: int = None) -> dict:
        phone = normalize(raw_phone)
        orders = []
        # Shorter input would suffix-match unrelated subscribers
        if len(phone) >= 10:
            suffixes = sorted({match_suffix(v) for v in phone_variants(phone)})
            orders = await OrderRepository.history_by_suffixes(db, suffixes, limit=limit)

        return {
            "phone": phone,
            "customer_name": orders[0].shipping_name if orders else None,
            "summary": summarize(orders).to_dict(),
            "recent_orders": [
                {
                    "order_number": o.order_number,
                    "status": o.status,
                    "total": o.total,
                    "date": o.created_at.isoformat() if o.created_at else None,
                }
                for o in orders[:RECENT_ORDERS]
            ],
        }
