import asyncio
import time
import uuid
import weakref
from datetime import datetime
from typing import List
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from shared.observability import storefront_orders_total, storefront_order_placement_seconds
from .exceptions import OrderBlockedError, OrderError
from .guard import OrderGuard
from .models import Order, OrderItem
from .notifications import OrderPlacedNotice
from .phone import normalize, variants
from .pricing import PricingResolver
from .repository import OrderRepository
from .schemas import PlaceOrderRequest, PlaceOrderResponse, ResolvedItem

logger = structlog.get_logger(__name__)

INSIDE_DHAKA = "inside_dhaka"
OUTSIDE_DHAKA = "outside_dhaka"
SHIPPING_RATES = {INSIDE_DHAKA: 80.0, OUTSIDE_DHAKA: 130.0}


def shipping_cost_for(zone) -> float:
    # Anything that is not explicitly inside Dhaka pays the outside rate
    return SHIPPING_RATES[INSIDE_DHAKA] if zone == INSIDE_DHAKA else SHIPPING_RATES[OUTSIDE_DHAKA]


def format_order_number(sequence: int) -> str:
    return f"ORD-{sequence:05d}"


class PhoneLocks:
    """Per-process mutual exclusion for guard + write on one phone number."""

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def for_phone(self, phone: str) -> asyncio.Lock:
        lock = self._locks.get(phone)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[phone] = lock
        return lock


phone_locks = PhoneLocks()


class OrderWriter:
    @staticmethod
    async def write(db: AsyncSession, data: PlaceOrderRequest, phone: str, items: List[ResolvedItem]) -> Order:
        subtotal = round(sum(i.line_total for i in items), 2)
        shipping_cost = shipping_cost_for(data.shipping_zone)
        discount = 0.0
        total = round(subtotal + shipping_cost - discount, 2)

        try:
            sequence = await OrderRepository.next_order_sequence(db)
            order = Order(
                id=str(uuid.uuid4()),
                order_number=format_order_number(sequence),
                user_id=data.user_id,
                status="pending",
                payment_method="cod",
                payment_status="pending",
                subtotal=subtotal,
                shipping_cost=shipping_cost,
                discount=discount,
                total=total,
                shipping_name=data.shipping.name,
                shipping_phone=phone,
                shipping_street=data.shipping.address,
                shipping_city="N/A",
                shipping_district="N/A",
                notes=data.notes or None,
                order_source=data.source,
                items=[
                    OrderItem(
                        product_id=i.product_id,
                        variation_id=i.variation_id,
                        product_name=i.name,
                        variation_name=i.variation_name,
                        product_image=i.image,
                        price=i.price,
                        quantity=i.quantity,
                    )
                    for i in items
                ],
            )
            await OrderRepository.add_order(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return order


class OrderService:
    @staticmethod
    async def place_order(db: AsyncSession, data: PlaceOrderRequest, now: datetime = None):
        """
        Guard -> price -> persist. Returns the client response and the notice
        the caller hands to the notification fan-out once the write committed.
        """
        started = time.perf_counter()
        phone = normalize(data.shipping.phone)
        log = logger.bind(phone_suffix=phone[-4:], item_count=len(data.items))

        try:
            async with phone_locks.for_phone(phone):
                await OrderGuard.check(db, variants(data.shipping.phone, phone), now=now)
                items = await PricingResolver.resolve(db, data.items)
                order = await OrderWriter.write(db, data, phone, items)
        except OrderBlockedError:
            storefront_orders_total.labels(outcome="blocked").inc()
            raise
        except OrderError as e:
            log.info("order_rejected", reason=e.message)
            storefront_orders_total.labels(outcome="rejected").inc()
            raise
        except Exception:
            storefront_orders_total.labels(outcome="failed").inc()
            raise

        storefront_orders_total.labels(outcome="placed").inc()
        storefront_order_placement_seconds.observe(time.perf_counter() - started)
        log.info("order_placed", order_id=order.id, order_number=order.order_number, total=order.total)

        response = PlaceOrderResponse(
            order_id=order.id,
            order_number=order.order_number,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            total=order.total,
            items=items,
        )
        notice = OrderPlacedNotice(
            order_id=order.id,
            order_number=order.order_number,
            customer_name=order.shipping_name,
            phone=phone,
            address=order.shipping_street,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            total=order.total,
            items=items,
            notes=order.notes,
        )
        return response, notice
