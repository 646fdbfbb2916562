from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request


def client_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Guest checkout has no user identity, so limits are keyed by the first
    X-Forwarded-For hop when a proxy sets it, else the socket address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=client_ip)
