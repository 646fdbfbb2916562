"""
Typed access to the string-valued admin_settings flags.

Every value in the store is a string. "true" is the only truthy value and
numbers that fail to parse fall back to the supplied default.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from .repository import SettingsRepository

ORDER_PROTECTION_PREFIX = "order_protection_"


def as_bool(settings: dict, key: str, default: bool = False) -> bool:
    value = settings.get(key)
    if value is None:
        return default
    return value.strip().lower() == "true"


def as_int(settings: dict, key: str, default: int) -> int:
    try:
        parsed = int(str(settings.get(key, "")).strip())
    except ValueError:
        return default
    # 0 and negatives are treated like a missing value
    return parsed if parsed > 0 else default


class SettingsService:
    @staticmethod
    async def order_protection(db: AsyncSession) -> dict[str, str]:
        return await SettingsRepository.get_by_prefix(db, ORDER_PROTECTION_PREFIX)

    @staticmethod
    async def get_values(db: AsyncSession, keys) -> dict[str, str]:
        return await SettingsRepository.get_values(db, keys)
