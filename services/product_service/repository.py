from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from .models import Product, ProductVariation


class ProductRepository:
    """Read side of the catalog. Only active records are ever returned."""

    @staticmethod
    async def get_active_products(db: AsyncSession, product_ids) -> dict:
        ids = list(set(product_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(Product).where(Product.id.in_(ids)).where(Product.is_active.is_(True))
        )
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def get_active_variations(db: AsyncSession, variation_ids) -> dict:
        ids = list(set(variation_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(ProductVariation)
            .where(ProductVariation.id.in_(ids))
            .where(ProductVariation.is_active.is_(True))
        )
        return {v.id: v for v in result.scalars().all()}
