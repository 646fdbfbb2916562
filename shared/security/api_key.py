"""
Shared secret for the admin back-office endpoints (customer history and
courier reputation lookups). These return customer phone numbers and
order history, so they are never exposed without the key.
"""
import secrets
import warnings
from shared.config import settings as config

INSECURE_DEFAULT = "insecure-default-change-me"

if not config.INTERNAL_API_KEY:
    warnings.warn(
        "INTERNAL_API_KEY is not set; risk endpoints accept an insecure default key. "
        "Set it before deploying.",
        stacklevel=2,
    )

INTERNAL_API_KEY: str = config.INTERNAL_API_KEY or INSECURE_DEFAULT


def verify_api_key(provided_key: str) -> bool:
    if not provided_key:
        return False
    # Constant-time to avoid leaking the key through response timing
    return secrets.compare_digest(provided_key.encode(), INTERNAL_API_KEY.encode())
