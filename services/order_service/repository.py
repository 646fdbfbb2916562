from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import noload
from .models import Order, OrderSequence

ORDER_SEQUENCE = "orders"

UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class OrderRepository:
    @staticmethod
    async def next_order_sequence(db: AsyncSession) -> int:
        """
        Bumps the counter inside the caller's transaction and returns the new value.

        A single upsert, so concurrent first orders cannot both try to create
        the counter row.
        """
        insert = UPSERT_INSERTS[db.bind.dialect.name]
        stmt = insert(OrderSequence).values(name=ORDER_SEQUENCE, value=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OrderSequence.name],
            set_={"value": OrderSequence.value + 1},
        ).returning(OrderSequence.value)
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def add_order(db: AsyncSession, order: Order):
        """Header and items go out in one flush; the caller owns the commit."""
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def latest_order_since(db: AsyncSession, phones, cutoff: datetime):
        result = await db.execute(
            select(Order)
            .options(noload(Order.items))
            .where(Order.shipping_phone.in_(list(phones)))
            .where(Order.created_at >= cutoff)
            .order_by(Order.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def orders_with_status(db: AsyncSession, phones, statuses):
        result = await db.execute(
            select(Order)
            .options(noload(Order.items))
            .where(Order.shipping_phone.in_(list(phones)))
            .where(Order.status.in_(list(statuses)))
            .order_by(Order.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def history_by_suffixes(db: AsyncSession, suffixes, limit=None):
        """Orders whose phone contains any of the given digit suffixes, newest first."""
        query = (
            select(Order)
            .options(noload(Order.items))
            .where(or_(*[Order.shipping_phone.contains(s, autoescape=True) for s in suffixes]))
            .order_by(Order.created_at.desc())
        )
        if limit:
            query = query.limit(limit)
        result = await db.execute(query)
        return result.scalars().all()
