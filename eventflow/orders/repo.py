"""
Order Service — リポジトリ

注文レコードの読み書き。実体はレコードストアの "orders" バケット。
"""

import logging
from uuid import uuid4

from ..errors import NotFoundError
from ..store import RecordStore
from .models import STATUS_FULFILLED, STATUS_PLACED, STATUS_SHIPPED, Order

logger = logging.getLogger(__name__)


class OrderRepo:
    def __init__(self, store: RecordStore[Order]):
        self.store = store

    async def search(self) -> list[Order]:
        return await self.store.values()

    async def get(self, order_id: str) -> Order:
        order = await self.store.get(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    async def create(self, order: Order) -> Order:
        """ID を採番して保存する。採番後の ID は変更しない。"""
        order.order_id = uuid4().hex[:8].upper()
        await self.store.put(order.order_id, order)
        return order

    async def update(self, order: Order) -> Order:
        await self.store.put(order.order_id, order)
        return order

    async def populate_fake_data_if_empty(self) -> None:
        """空のデータベースにサンプル注文を投入する。"""
        if not await self.store.is_empty():
            logger.info("Fake order data already present.")
            return

        logger.info("Loading fake order data.")
        await self.update(Order(
            order_id="123",
            item_id="ABC",
            item_name="Do-it-yourself Brain Surgery Kit",
            quantity=1,
            price=1999,
            total=1999,
            status=STATUS_SHIPPED,
            tracking_number=uuid4().hex[:10].upper(),
        ))
        await self.update(Order(
            order_id="456",
            item_id="DEF",
            item_name="Rectangular Basketball",
            quantity=3,
            price=900,
            total=2700,
            status=STATUS_PLACED,
        ))
        await self.update(Order(
            order_id="789",
            item_id="GHI",
            item_name="The Internet",
            quantity=3,
            price=14999,
            total=44997,
            status=STATUS_FULFILLED,
        ))
