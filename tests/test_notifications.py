import asyncio
import hashlib
import httpx
from services.order_service.notifications import (
    NotificationDispatcher, OrderPlacedNotice, build_conversion_event, build_sms_payload,
)
from services.order_service.schemas import ResolvedItem

from factories import add_product, add_settings, order_payload

SMS_PATH = "/send-sms"
EMAIL_PATH = "/send-order-email"
CONVERSION_PATH = "/v18.0/123456/events"


def sha(value):
    return hashlib.sha256(value.encode()).hexdigest()


def notice(**overrides):
    fields = dict(
        order_id="5b1f0c3e-0000-4000-8000-000000000001",
        order_number="ORD-00007",
        customer_name="Rahim Uddin",
        phone="01712345678",
        address="House 1, Road 2, Dhanmondi",
        subtotal=1000.0,
        shipping_cost=80.0,
        total=1080.0,
        items=[
            ResolvedItem(product_id="p-1", name="Cotton Tarsel", price=500.0, quantity=2),
            ResolvedItem(name="Gift wrap", price=0.5, quantity=1),
        ],
        notes="call first",
    )
    fields.update(overrides)
    return OrderPlacedNotice(**fields)


async def enable_all_channels(db):
    await add_settings(
        db,
        sms_enabled="true",
        sms_auto_send_order_placed="true",
        fb_capi_enabled="true",
        fb_pixel_id="123456",
        fb_capi_token="secret-token",
    )


def test_conversion_event_hashes_customer_identifiers():
    event = build_conversion_event(notice(), now=1_700_000_000)

    assert event["event_name"] == "Purchase"
    assert event["event_id"] == "purchase_5b1f0c3e-0000-4000-8000-000000000001"
    assert event["event_time"] == 1_700_000_000
    assert event["user_data"]["ph"] == [sha("8801712345678")]
    assert event["user_data"]["fn"] == [sha("rahim")]
    assert event["user_data"]["ln"] == [sha("uddin")]
    assert event["user_data"]["country"] == [sha("bd")]
    assert event["custom_data"]["value"] == 1080.0
    assert event["custom_data"]["content_ids"] == ["p-1"]
    assert event["custom_data"]["num_items"] == 3


def test_sms_payload_uses_order_placed_template():
    payload = build_sms_payload(notice())
    assert payload["template_key"] == "order_placed"
    assert payload["variables"] == {
        "customer_name": "Rahim Uddin", "order_number": "ORD-00007", "total": "1080",
    }


async def test_all_channels_dispatch(db, dispatcher, outbound):
    await enable_all_channels(db)

    tasks = dispatcher.dispatch_order_placed(notice())
    outcomes = await asyncio.gather(*tasks)

    assert outcomes == ["sent", "sent", "sent"]
    assert sorted(outbound.paths()) == sorted([CONVERSION_PATH, SMS_PATH, EMAIL_PATH])
    conversion = [r for r in outbound.requests if r.url.path == CONVERSION_PATH][0]
    assert conversion.url.params["access_token"] == "secret-token"
    email = outbound.body_for(EMAIL_PATH)
    assert email["order_number"] == "ORD-00007"
    assert email["items"][1] == {"name": "Gift wrap", "quantity": 1, "price": 0.5, "image": None}
    assert email["notes"] == "call first"


async def test_disabled_channels_are_skipped(db, dispatcher, outbound):
    await add_settings(db, sms_enabled="true", sms_auto_send_order_placed="false")

    outcomes = await asyncio.gather(*dispatcher.dispatch_order_placed(notice()))

    assert outcomes == ["skipped", "skipped", "sent"]
    assert outbound.paths() == [EMAIL_PATH]


async def test_sms_failure_is_isolated(db, dispatcher, outbound):
    await enable_all_channels(db)
    outbound.fail(SMS_PATH, RuntimeError("sms gateway exploded"))

    outcomes = await asyncio.gather(*dispatcher.dispatch_order_placed(notice()))

    assert outcomes == ["sent", "failed", "sent"]
    assert set(outbound.paths()) == {CONVERSION_PATH, SMS_PATH, EMAIL_PATH}


async def test_transport_errors_are_retried(session_factory):
    calls = []

    def flaky(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={})

    dispatcher = NotificationDispatcher(
        session_factory=session_factory,
        transport=httpx.MockTransport(flaky),
        max_attempts=2,
        sms_url="",
        email_url="http://notify.test/send-order-email",
        retry_backoff=0,
    )

    outcomes = await asyncio.gather(*dispatcher.dispatch_order_placed(notice()))

    assert outcomes == ["skipped", "skipped", "sent"]
    assert len(calls) == 2


async def test_slow_channel_times_out(session_factory):
    async def hang(request):
        await asyncio.sleep(5)
        return httpx.Response(200)

    dispatcher = NotificationDispatcher(
        session_factory=session_factory,
        transport=httpx.MockTransport(hang),
        timeout=0.05,
        sms_url="",
        email_url="http://notify.test/send-order-email",
    )

    outcomes = await asyncio.gather(*dispatcher.dispatch_order_placed(notice()))
    assert outcomes[2] == "failed"


async def test_response_does_not_wait_for_notifications(client, db, dispatcher, outbound):
    await enable_all_channels(db)
    outbound.fail(SMS_PATH, RuntimeError("sms gateway exploded"))
    release = asyncio.Event()
    outbound.on(EMAIL_PATH, release.wait)
    product = await add_product(db, price=500.0)

    resp = await client.post("/place-order", json=order_payload(
        [{"productId": product.id, "quantity": 2}], shippingZone="inside_dhaka",
    ))

    # Email is still parked on the event, yet the client already has its answer
    assert resp.status_code == 200
    assert resp.json()["total"] == 1080
    assert not release.is_set()
    assert dispatcher.in_flight >= 1

    release.set()
    await dispatcher.drain()

    assert set(outbound.paths()) == {CONVERSION_PATH, SMS_PATH, EMAIL_PATH}
    email = outbound.body_for(EMAIL_PATH)
    assert email["order_number"] == resp.json()["orderNumber"]
    assert email["total"] == 1080
