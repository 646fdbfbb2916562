from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from .models import AdminSetting


class SettingsRepository:
    @staticmethod
    async def get_values(db: AsyncSession, keys) -> dict[str, str]:
        result = await db.execute(
            select(AdminSetting.key, AdminSetting.value).where(AdminSetting.key.in_(list(keys)))
        )
        return {key: value for key, value in result.all()}

    @staticmethod
    async def get_by_prefix(db: AsyncSession, prefix: str) -> dict[str, str]:
        result = await db.execute(
            select(AdminSetting.key, AdminSetting.value).where(AdminSetting.key.startswith(prefix, autoescape=True))
        )
        return {key: value for key, value in result.all()}
