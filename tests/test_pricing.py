import uuid
import pytest
from sqlalchemy import event
from services.order_service.exceptions import ItemResolutionError
from services.order_service.pricing import PricingResolver, is_catalog_id
from services.order_service.schemas import CartItem

from factories import add_product, add_variation


def cart_item(**fields):
    return CartItem.model_validate(fields)


def test_catalog_id_format():
    assert is_catalog_id(str(uuid.uuid4()))
    assert not is_catalog_id("p1")
    assert not is_catalog_id("")
    assert not is_catalog_id(None)


async def test_catalog_price_comes_from_store(db):
    product = await add_product(db, price=500.0)

    items = await PricingResolver.resolve(db, [
        cart_item(productId=product.id, quantity=2, price=1.0, productName="cheap"),
    ])

    assert len(items) == 1
    assert items[0].price == 500.0
    assert items[0].name == "Cotton Tarsel"
    assert items[0].image == "https://cdn.test/p.jpg"
    assert items[0].product_id == product.id
    assert items[0].variation_id is None


async def test_variation_overrides_price_and_name(db):
    product = await add_product(db, price=500.0)
    variation = await add_variation(db, product, name="XL", price=650.0)

    items = await PricingResolver.resolve(db, [
        cart_item(productId=product.id, variationId=variation.id, quantity=1),
    ])

    assert items[0].price == 650.0
    assert items[0].name == "Cotton Tarsel (XL)"
    assert items[0].variation_name == "XL"


async def test_variation_without_price_uses_product_price(db):
    product = await add_product(db, price=500.0)
    variation = await add_variation(db, product, name="Red", price=None)

    items = await PricingResolver.resolve(db, [
        cart_item(productId=product.id, variationId=variation.id, quantity=1),
    ])

    assert items[0].price == 500.0


async def test_variation_of_another_product_is_rejected(db):
    product = await add_product(db, name="A")
    other = await add_product(db, name="B")
    variation = await add_variation(db, other)

    with pytest.raises(ItemResolutionError) as exc:
        await PricingResolver.resolve(db, [
            cart_item(productId=product.id, variationId=variation.id, quantity=1),
        ])
    assert exc.value.message == "Some items are unavailable"


async def test_inactive_records_are_rejected(db):
    inactive = await add_product(db, active=False)
    with pytest.raises(ItemResolutionError):
        await PricingResolver.resolve(db, [cart_item(productId=inactive.id, quantity=1)])

    product = await add_product(db)
    variation = await add_variation(db, product, active=False)
    with pytest.raises(ItemResolutionError):
        await PricingResolver.resolve(db, [
            cart_item(productId=product.id, variationId=variation.id, quantity=1),
        ])


async def test_unknown_product_is_rejected(db):
    with pytest.raises(ItemResolutionError):
        await PricingResolver.resolve(db, [cart_item(productId=str(uuid.uuid4()), quantity=1)])


async def test_custom_item_keeps_its_inline_data(db):
    items = await PricingResolver.resolve(db, [
        cart_item(productId="gift-box", productName="  Gift box ", price=250, quantity=3,
                  productImage="https://cdn.test/gift.jpg"),
    ])

    assert items[0].product_id is None
    assert items[0].name == "Gift box"
    assert items[0].price == 250.0
    assert items[0].quantity == 3
    assert items[0].image == "https://cdn.test/gift.jpg"


@pytest.mark.parametrize("fields", [
    {"productName": "", "price": 100},
    {"productName": "x" * 151, "price": 100},
    {"productName": "Box", "price": 0},
    {"productName": "Box", "price": -5},
    {"productName": "Box", "price": 10_000_001},
    {"productName": "Box", "price": float("inf")},
    {"productName": "Box"},
    {"productName": "Box", "price": 100, "productImage": "https://x/" + "a" * 2048},
])
async def test_invalid_custom_items(db, fields):
    with pytest.raises(ItemResolutionError) as exc:
        await PricingResolver.resolve(db, [cart_item(productId="custom", quantity=1, **fields)])
    assert exc.value.message == "Invalid items"


async def test_one_bad_line_rejects_the_cart(db):
    product = await add_product(db)
    with pytest.raises(ItemResolutionError):
        await PricingResolver.resolve(db, [
            cart_item(productId=product.id, quantity=1),
            cart_item(productId="custom", productName="Box", price=0, quantity=1),
        ])


class StatementCounter:
    def __init__(self, engine):
        self.engine = engine.sync_engine
        self.statements = []

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)

    def __enter__(self):
        event.listen(self.engine, "before_cursor_execute", self)
        return self

    def __exit__(self, *exc):
        event.remove(self.engine, "before_cursor_execute", self)


async def test_catalog_lookup_is_two_queries_at_most(db, engine):
    products = [await add_product(db, name=f"P{i}") for i in range(3)]
    variations = [await add_variation(db, p, name="XL") for p in products]
    cart = [cart_item(productId=p.id, variationId=v.id, quantity=1) for p, v in zip(products, variations)]
    cart.append(cart_item(productId=products[0].id, quantity=2))

    with StatementCounter(engine) as counter:
        items = await PricingResolver.resolve(db, cart)

    assert len(items) == 4
    assert len(counter.statements) == 2


async def test_custom_only_cart_skips_the_catalog(db, engine):
    with StatementCounter(engine) as counter:
        await PricingResolver.resolve(db, [cart_item(productId="custom", productName="Box", price=90, quantity=1)])

    assert counter.statements == []
