from shared.observability.setup import redact_phones
from shared.security import verify_api_key
from shared.security.rate_limiter import client_ip
from starlette.requests import Request


def make_request(headers=None, client=("10.0.0.9", 5000)):
    scope = {
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_phone_fields_are_masked_in_logs():
    event = redact_phones(None, "info", {"event": "order_blocked", "phone": "01712345678", "count": 2})
    assert event["phone"] == "*******5678"
    assert event["count"] == 2


def test_short_values_left_alone():
    assert redact_phones(None, "info", {"phone": "123"})["phone"] == "123"


def test_internal_key_check():
    assert verify_api_key("test-internal-key")
    assert not verify_api_key("wrong")
    assert not verify_api_key(None)


def test_rate_limit_key_prefers_first_forwarded_hop():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert client_ip(request) == "ip:203.0.113.7"


def test_rate_limit_key_falls_back_to_socket_address():
    assert client_ip(make_request()) == "ip:10.0.0.9"
