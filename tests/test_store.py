import pytest
from sqlalchemy import text

from eventflow.orders.models import Order
from eventflow.store import RecordStore


def _order(order_id, status="PLACED"):
    return Order(order_id=order_id, item_id="ABC", quantity=1, price=10, total=10, status=status)


@pytest.mark.asyncio
async def test_get_put(session_factory):
    store = RecordStore(session_factory, "orders", Order)

    assert await store.get("A") is None
    assert await store.get("") is None

    await store.put("A", _order("A"))
    await store.put("A", _order("A", status="SHIPPED"))

    assert (await store.get("A")).status == "SHIPPED"


@pytest.mark.asyncio
async def test_buckets_are_separate(session_factory):
    orders = RecordStore(session_factory, "orders", Order)
    archive = RecordStore(session_factory, "archive", Order)

    await orders.put("A", _order("A"))

    assert await archive.get("A") is None
    assert await archive.is_empty()
    assert not await orders.is_empty()


@pytest.mark.asyncio
async def test_values_skip_duplicate_documents(session_factory):
    store = RecordStore(session_factory, "orders", Order)
    order = _order("A")

    await store.put("A", order)
    await store.put("alias", order)
    await store.put("B", _order("B"))

    assert [o.order_id for o in await store.values()] == ["A", "B"]


@pytest.mark.asyncio
async def test_updated_at_keeps_time_zone(session_factory):
    async with session_factory() as session:
        result = await session.execute(
            text("SELECT sql FROM sqlite_master WHERE type = 'table' AND name = 'records'")
        )
        ddl = result.scalar_one()

    assert "updated_at  TIMESTAMP WITH TIME ZONE" in ddl
