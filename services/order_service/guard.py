"""
Admission control for new orders, keyed by phone number.

Two independent checks, both driven by the order_protection_* settings:
status-based blocking (too many open orders for the number) and a
time-based cooldown after the most recent order.
"""
from datetime import datetime, timedelta, timezone
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from services.settings_service.service import SettingsService, as_bool, as_int
from .exceptions import OrderBlockedError
from .repository import OrderRepository

logger = structlog.get_logger(__name__)

DEFAULT_COOLDOWN_HOURS = 12
DEFAULT_MAX_PENDING_ORDERS = 2

TIME_BLOCKED = "TIME_BLOCKED"
STATUS_BLOCKED_PENDING = "STATUS_BLOCKED_PENDING"
STATUS_BLOCKED_SHIPPED = "STATUS_BLOCKED_SHIPPED"

OPEN_STATUSES = ("pending", "processing", "shipped")

STATUS_LABELS_BN = {
    "pending": "পেন্ডিং",
    "processing": "প্রসেসিং",
    "shipped": "শিপড",
    "delivered": "ডেলিভার্ড",
    "cancelled": "বাতিল",
    "returned": "রিটার্ন",
}


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def wait_hours(cooldown_hours: int, elapsed: timedelta) -> int:
    hours_ago = round(elapsed.total_seconds() / 3600)
    return max(1, cooldown_hours - hours_ago)


def cooldown_message(elapsed: timedelta, status: str, wait: int) -> str:
    minutes_ago = round(elapsed.total_seconds() / 60)
    hours_ago = round(elapsed.total_seconds() / 3600)
    time_ago = f"{minutes_ago} মিনিট আগে" if hours_ago < 1 else f"{hours_ago} ঘন্টা আগে"
    status_label = STATUS_LABELS_BN.get(status, status)
    return (
        f"আপনি {time_ago} একটি অর্ডার করেছেন ({status_label})। "
        f"অনুগ্রহ করে আরও {wait} ঘন্টা পরে অর্ডার করুন।"
    )


class OrderGuard:
    @staticmethod
    async def check(db: AsyncSession, phones, now: datetime = None):
        """Raises OrderBlockedError when the number may not order right now."""
        now = now or datetime.now(timezone.utc)
        settings = await SettingsService.order_protection(db)

        if as_bool(settings, "order_protection_status_blocking_enabled"):
            await OrderGuard._check_open_orders(db, phones, settings)

        if as_bool(settings, "order_protection_time_blocking_enabled"):
            cooldown = as_int(settings, "order_protection_order_cooldown_hours", DEFAULT_COOLDOWN_HOURS)
            await OrderGuard._check_cooldown(db, phones, cooldown, now)

    @staticmethod
    async def _check_open_orders(db: AsyncSession, phones, settings: dict):
        block_pending = as_bool(settings, "order_protection_block_pending_orders", default=True)
        block_shipped = as_bool(settings, "order_protection_block_shipped_orders")
        max_pending = as_int(settings, "order_protection_max_pending_orders", DEFAULT_MAX_PENDING_ORDERS)

        open_orders = await OrderRepository.orders_with_status(db, phones, OPEN_STATUSES)
        pending = [o for o in open_orders if o.status in ("pending", "processing")]
        shipped = [o for o in open_orders if o.status == "shipped"]

        if block_pending and len(pending) >= max_pending:
            logger.info("order_blocked", reason="pending_orders", pending_count=len(pending))
            raise OrderBlockedError(
                f"আপনার {len(pending)}টি অর্ডার পেন্ডিং আছে। নতুন অর্ডার করতে আগের অর্ডার ডেলিভারি হওয়া পর্যন্ত অপেক্ষা করুন।",
                STATUS_BLOCKED_PENDING,
                pendingCount=len(pending),
                orderNumbers=[o.order_number for o in pending],
            )

        if block_shipped and shipped:
            logger.info("order_blocked", reason="shipped_orders", shipped_count=len(shipped))
            raise OrderBlockedError(
                "আপনার একটি অর্ডার ডেলিভারির জন্য পাঠানো হয়েছে। ডেলিভারি সম্পন্ন হলে নতুন অর্ডার করতে পারবেন।",
                STATUS_BLOCKED_SHIPPED,
                shippedCount=len(shipped),
                orderNumbers=[o.order_number for o in shipped],
            )

    @staticmethod
    async def _check_cooldown(db: AsyncSession, phones, cooldown_hours: int, now: datetime):
        cutoff = now - timedelta(hours=cooldown_hours)
        last_order = await OrderRepository.latest_order_since(db, phones, cutoff)
        if last_order is None:
            return

        elapsed = now - as_utc(last_order.created_at)
        wait = wait_hours(cooldown_hours, elapsed)
        logger.info(
            "order_blocked",
            reason="cooldown",
            last_order_number=last_order.order_number,
            minutes_since_last_order=round(elapsed.total_seconds() / 60),
            wait_hours=wait,
        )
        raise OrderBlockedError(
            cooldown_message(elapsed, last_order.status, wait),
            TIME_BLOCKED,
            lastOrderNumber=last_order.order_number,
            lastOrderStatus=last_order.status,
            waitHours=wait,
        )
