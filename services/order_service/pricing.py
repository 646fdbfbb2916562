"""
Server-side pricing for a submitted cart.

Catalog lines (product ids in the store's UUID key format) are priced from
the product store; whatever price the client sent is ignored. Any other
line is a custom item that carries its own name and price and is checked
structurally. Resolution is all-or-nothing: one bad line rejects the cart.
"""
import math
import re
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from services.product_service.repository import ProductRepository
from .exceptions import ItemResolutionError
from .schemas import CartItem, ResolvedItem

CATALOG_ID = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MAX_CUSTOM_NAME = 150
MAX_CUSTOM_PRICE = 10_000_000
MAX_IMAGE_URL = 2048


def is_catalog_id(value) -> bool:
    return bool(value) and bool(CATALOG_ID.match(value))


def resolve_custom_item(item: CartItem) -> ResolvedItem:
    name = item.product_name or ""
    if not name or len(name) > MAX_CUSTOM_NAME:
        raise ItemResolutionError("Invalid items")

    price = item.price
    if price is None or not math.isfinite(price) or price <= 0 or price > MAX_CUSTOM_PRICE:
        raise ItemResolutionError("Invalid items")

    image = item.product_image
    if image and len(image) > MAX_IMAGE_URL:
        raise ItemResolutionError("Invalid items")

    return ResolvedItem(name=name, image=image, price=float(price), quantity=item.quantity)


class PricingResolver:
    @staticmethod
    async def resolve(db: AsyncSession, items: List[CartItem]) -> List[ResolvedItem]:
        catalog_items = [i for i in items if is_catalog_id(i.product_id)]
        custom_items = [i for i in items if not is_catalog_id(i.product_id)]

        # At most one query per table regardless of cart size
        products = await ProductRepository.get_active_products(
            db, [i.product_id for i in catalog_items]
        )
        variations = await ProductRepository.get_active_variations(
            db, [i.variation_id for i in catalog_items if is_catalog_id(i.variation_id)]
        )

        resolved = []
        for item in catalog_items:
            product = products.get(item.product_id)
            if product is None:
                raise ItemResolutionError("Some items are unavailable")

            variation = None
            if item.variation_id:
                variation = variations.get(item.variation_id)
                if variation is None or variation.product_id != product.id:
                    raise ItemResolutionError("Some items are unavailable")

            if variation is not None:
                price = variation.price if variation.price is not None else product.price
                name = f"{product.name} ({variation.name})"
            else:
                price = product.price
                name = product.name

            resolved.append(ResolvedItem(
                product_id=product.id,
                variation_id=variation.id if variation else None,
                variation_name=variation.name if variation else None,
                name=name,
                image=product.cover_image,
                price=float(price),
                quantity=item.quantity,
            ))

        resolved.extend(resolve_custom_item(item) for item in custom_items)
        return resolved
