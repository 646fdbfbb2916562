"""
Client for the third-party courier reputation network.

The upstream API has answered in three incompatible shapes over time:

    {"status": "success", "data": {"courierData": {"pathao": {...}, "summary": {...}}}}
    {"status": 200, "data": {"pathao": {...}, "summary": {...}}}
    {"pathao": {...}, "summary": {...}}

Each shape has its own decoder; the first one that matches wins and a body
no decoder recognises is treated as unavailable. Every failure (timeout,
429, 401, 403, other non-2xx, bad JSON) degrades to an unavailable lookup
instead of raising.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional
import httpx
import structlog
from shared.config import settings as config
from shared.observability import storefront_courier_lookups_total

logger = structlog.get_logger(__name__)

COURIER_NAMES = ("pathao", "steadfast", "redx", "paperfly", "parceldex")
SNAPSHOT_KEYS = ("summary",) + COURIER_NAMES

OK = "ok"
RATE_LIMITED = "rate_limited"
UNAUTHORIZED = "unauthorized"
BLOCKED = "blocked"
TIMEOUT = "timeout"
ERROR = "error"
UNDECODABLE = "undecodable"
NOT_CONFIGURED = "not_configured"


def _number(value, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return cast(0)


@dataclass
class CourierStats:
    total_parcel: int
    success_parcel: int
    cancelled_parcel: int
    success_ratio: float

    @classmethod
    def from_raw(cls, raw) -> Optional["CourierStats"]:
        if not isinstance(raw, dict):
            return None
        return cls(
            total_parcel=_number(raw.get("total_parcel"), int),
            success_parcel=_number(raw.get("success_parcel"), int),
            cancelled_parcel=_number(raw.get("cancelled_parcel"), int),
            success_ratio=_number(raw.get("success_ratio")),
        )

    def to_dict(self) -> dict:
        return {
            "total_parcel": self.total_parcel,
            "success_parcel": self.success_parcel,
            "cancelled_parcel": self.cancelled_parcel,
            "success_ratio": self.success_ratio,
        }


@dataclass
class CourierSnapshot:
    shape: str
    couriers: Dict[str, CourierStats] = field(default_factory=dict)
    summary: Optional[CourierStats] = None

    def risk_tier(self) -> Optional[str]:
        """None when the network has no parcels on record for the number."""
        if self.summary is None or self.summary.total_parcel <= 0:
            return None
        ratio = self.summary.success_ratio
        if ratio < 50:
            return "high"
        if ratio < 80:
            return "medium"
        return "low"

    def to_dict(self) -> dict:
        courier_data = {name: stats.to_dict() for name, stats in self.couriers.items()}
        courier_data["summary"] = self.summary.to_dict() if self.summary else None
        return {"courierData": courier_data}


def _snapshot(shape: str, block: dict) -> CourierSnapshot:
    couriers = {}
    for name in COURIER_NAMES:
        stats = CourierStats.from_raw(block.get(name))
        if stats is not None:
            couriers[name] = stats
    return CourierSnapshot(shape=shape, couriers=couriers, summary=CourierStats.from_raw(block.get("summary")))


def _has_snapshot_keys(block) -> bool:
    return isinstance(block, dict) and any(block.get(k) for k in SNAPSHOT_KEYS)


def decode_nested(body: dict) -> Optional[CourierSnapshot]:
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("courierData"), dict):
        return _snapshot("nested", data["courierData"])
    return None


def decode_wrapped(body: dict) -> Optional[CourierSnapshot]:
    data = body.get("data")
    if _has_snapshot_keys(data):
        return _snapshot("wrapped", data)
    return None


def decode_direct(body: dict) -> Optional[CourierSnapshot]:
    if _has_snapshot_keys(body):
        return _snapshot("direct", body)
    return None


DECODERS = (decode_nested, decode_wrapped, decode_direct)


def decode_courier_response(body) -> Optional[CourierSnapshot]:
    if not isinstance(body, dict):
        return None
    for decoder in DECODERS:
        snapshot = decoder(body)
        if snapshot is not None:
            return snapshot
    return None


DEGRADED_FLAGS = {
    RATE_LIMITED: "rateLimited",
    UNAUTHORIZED: "unauthorized",
    BLOCKED: "blocked",
    TIMEOUT: "blocked",
}

DEGRADED_MESSAGES = {
    RATE_LIMITED: "Courier API rate limit reached. Please wait a few minutes and try again.",
    UNAUTHORIZED: "Courier API key is invalid or expired.",
    BLOCKED: "The courier history service is temporarily blocked. Please try again later.",
    TIMEOUT: "Courier history service timed out. Please try again later.",
    NOT_CONFIGURED: "Courier API key not configured.",
}


@dataclass
class CourierLookup:
    outcome: str
    snapshot: Optional[CourierSnapshot] = None

    @property
    def available(self) -> bool:
        return self.outcome == OK and self.snapshot is not None

    @property
    def transient(self) -> bool:
        return self.outcome in (RATE_LIMITED, BLOCKED, TIMEOUT, ERROR)

    def flags(self) -> dict:
        if self.available:
            return {}
        return {DEGRADED_FLAGS.get(self.outcome, "unavailable"): True}

    @property
    def message(self) -> str:
        return DEGRADED_MESSAGES.get(self.outcome, "Courier history is currently unavailable.")


class CourierClient:
    def __init__(
        self,
        api_key: str = config.BDCOURIER_API_KEY,
        base_url: str = config.BDCOURIER_API_URL,
        timeout: float = config.COURIER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def lookup(self, phone: str) -> CourierLookup:
        result = await self._lookup(phone)
        storefront_courier_lookups_total.labels(outcome=result.outcome).inc()
        if not result.available:
            logger.info("courier_lookup_unavailable", outcome=result.outcome)
        return result

    async def _lookup(self, phone: str) -> CourierLookup:
        if not self.configured:
            return CourierLookup(NOT_CONFIGURED)

        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                # Hard deadline: cancel the call rather than wait on a slow upstream
                resp = await asyncio.wait_for(
                    client.get(self.base_url, params={"phone": phone}, headers=headers),
                    timeout=self.timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return CourierLookup(TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning("courier_lookup_error", error=repr(e))
            return CourierLookup(ERROR)

        if resp.status_code == 429:
            return CourierLookup(RATE_LIMITED)
        if resp.status_code == 401:
            return CourierLookup(UNAUTHORIZED)
        if resp.status_code == 403:
            # Usually the upstream bot protection (challenge-platform page)
            return CourierLookup(BLOCKED)
        if not resp.is_success:
            logger.warning("courier_lookup_error", status=resp.status_code)
            return CourierLookup(ERROR)

        try:
            body = resp.json()
        except ValueError:
            return CourierLookup(ERROR)

        snapshot = decode_courier_response(body)
        if snapshot is None:
            return CourierLookup(UNDECODABLE)
        return CourierLookup(OK, snapshot)
