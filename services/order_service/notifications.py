"""
Best-effort side effects of a placed order: ad-platform conversion event,
SMS confirmation and email summary.

Each channel runs in its own detached asyncio task with its own timeout
and error boundary. Nothing here is awaited by the request that placed the
order, and a failing channel never touches the others.
"""
import asyncio
import hashlib
import time
from dataclasses import dataclass, field
from typing import List, Optional
import httpx
import structlog
from shared.config import settings as config
from shared.config.database import AsyncSessionLocal
from shared.observability import storefront_notifications_total
from services.settings_service.service import SettingsService, as_bool
from .phone import international
from .schemas import ResolvedItem

logger = structlog.get_logger(__name__)

SMS_SETTING_KEYS = ["sms_enabled", "sms_auto_send_order_placed"]
CONVERSION_SETTING_KEYS = [
    "fb_capi_enabled", "fb_pixel_id", "fb_capi_token", "fb_capi_access_token", "fb_test_event_code",
]

SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class OrderPlacedNotice:
    order_id: str
    order_number: str
    customer_name: str
    phone: str
    address: str
    subtotal: float
    shipping_cost: float
    total: float
    items: List[ResolvedItem] = field(default_factory=list)
    notes: Optional[str] = None


def hash_identifier(value: str) -> str:
    return hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()


def build_conversion_event(notice: OrderPlacedNotice, now: float = None) -> dict:
    now = int(now if now is not None else time.time())
    first_name, _, last_name = notice.customer_name.strip().partition(" ")

    user_data = {
        "ph": [hash_identifier(international(notice.phone))],
        "country": [hash_identifier("bd")],
        "external_id": [hash_identifier(notice.phone)],
    }
    if first_name:
        user_data["fn"] = [hash_identifier(first_name)]
    if last_name.strip():
        user_data["ln"] = [hash_identifier(last_name)]

    catalog_items = [i for i in notice.items if i.product_id]
    return {
        "event_name": "Purchase",
        "event_time": now,
        "event_id": f"purchase_{notice.order_id}",
        "action_source": "website",
        "event_source_url": config.STORE_URL,
        "user_data": user_data,
        "custom_data": {
            "currency": "BDT",
            "value": notice.total,
            "content_ids": [i.product_id for i in catalog_items],
            "content_type": "product",
            "contents": [
                {"id": i.product_id, "quantity": i.quantity, "item_price": i.price} for i in catalog_items
            ],
            "num_items": sum(i.quantity for i in notice.items),
            "order_id": notice.order_id,
        },
    }


def format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_sms_payload(notice: OrderPlacedNotice) -> dict:
    return {
        "phone": notice.phone,
        "template_key": "order_placed",
        "order_id": notice.order_id,
        "variables": {
            "customer_name": notice.customer_name,
            "order_number": notice.order_number,
            "total": format_amount(notice.total),
        },
    }


def build_email_payload(notice: OrderPlacedNotice) -> dict:
    return {
        "order_id": notice.order_id,
        "order_number": notice.order_number,
        "customer_name": notice.customer_name,
        "customer_phone": notice.phone,
        "customer_address": notice.address,
        "subtotal": notice.subtotal,
        "shipping_cost": notice.shipping_cost,
        "total": notice.total,
        "items": [
            {"name": i.name, "quantity": i.quantity, "price": i.price, "image": i.image}
            for i in notice.items
        ],
        "notes": notice.notes,
    }


class NotificationDispatcher:
    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        transport: httpx.AsyncBaseTransport = None,
        timeout: float = config.NOTIFICATION_TIMEOUT_SECONDS,
        max_attempts: int = config.NOTIFICATION_MAX_ATTEMPTS,
        sms_url: str = config.SMS_DISPATCH_URL,
        email_url: str = config.EMAIL_DISPATCH_URL,
        conversions_base: str = config.CONVERSIONS_API_BASE,
        retry_backoff: float = 0.5,
    ):
        self._session_factory = session_factory
        self._transport = transport
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._retry_backoff = retry_backoff
        self.sms_url = sms_url
        self.email_url = email_url
        self.conversions_base = conversions_base.rstrip("/")
        self._tasks: set = set()

    def dispatch_order_placed(self, notice: OrderPlacedNotice) -> list:
        """Schedules every channel concurrently and returns immediately."""
        channels = {
            "conversion": self.send_conversion_event,
            "sms": self.send_sms,
            "email": self.send_email,
        }
        scheduled = []
        for channel, sender in channels.items():
            task = asyncio.create_task(
                self._run_isolated(channel, sender, notice),
                name=f"notify-{channel}-{notice.order_id}",
            )
            # Keep a strong reference until the task finishes
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled.append(task)
        return scheduled

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Waits for in-flight notification tasks (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run_isolated(self, channel: str, sender, notice: OrderPlacedNotice) -> str:
        log = logger.bind(channel=channel, order_id=notice.order_id, order_number=notice.order_number)
        try:
            outcome = await asyncio.wait_for(sender(notice), timeout=self._timeout)
        except Exception as e:
            log.error("notification_failed", error=repr(e))
            storefront_notifications_total.labels(channel=channel, outcome=FAILED).inc()
            return FAILED
        log.info("notification_done", outcome=outcome)
        storefront_notifications_total.labels(channel=channel, outcome=outcome).inc()
        return outcome

    async def _post(self, url: str, payload: dict, params: dict = None) -> httpx.Response:
        """POST with bounded retry on transport errors; HTTP error statuses are not retried."""
        attempt = 0
        while True:
            attempt += 1
            try:
                async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                    resp = await client.post(url, json=payload, params=params)
                resp.raise_for_status()
                return resp
            except httpx.TransportError:
                if attempt >= self._max_attempts:
                    raise
                await asyncio.sleep(self._retry_backoff * 2 ** (attempt - 1))

    async def _settings(self, keys) -> dict:
        async with self._session_factory() as db:
            return await SettingsService.get_values(db, keys)

    async def send_conversion_event(self, notice: OrderPlacedNotice) -> str:
        settings = await self._settings(CONVERSION_SETTING_KEYS)
        pixel_id = (settings.get("fb_pixel_id") or "").strip()
        token = (settings.get("fb_capi_token") or settings.get("fb_capi_access_token") or "").strip()
        if not as_bool(settings, "fb_capi_enabled") or not pixel_id or not token:
            return SKIPPED

        payload = {"data": [build_conversion_event(notice)]}
        test_code = (settings.get("fb_test_event_code") or "").strip()
        if test_code:
            payload["test_event_code"] = test_code

        await self._post(
            f"{self.conversions_base}/{pixel_id}/events", payload, params={"access_token": token}
        )
        return SENT

    async def send_sms(self, notice: OrderPlacedNotice) -> str:
        settings = await self._settings(SMS_SETTING_KEYS)
        if not (as_bool(settings, "sms_enabled") and as_bool(settings, "sms_auto_send_order_placed")):
            return SKIPPED
        if not self.sms_url:
            return SKIPPED
        await self._post(self.sms_url, build_sms_payload(notice))
        return SENT

    async def send_email(self, notice: OrderPlacedNotice) -> str:
        if not self.email_url:
            return SKIPPED
        await self._post(self.email_url, build_email_payload(notice))
        return SENT


dispatcher = NotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return dispatcher
