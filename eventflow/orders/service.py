"""
Order Service — 注文の作成・出荷・キャンセル

注文の作成は同期と非同期が混在する:

  place_order
    1. ID を採番し、合計金額を計算して PLACED で保存
    2. Payment Service の authorize を直接呼ぶ (同期・イベントを経由しない)
    3. order.placed を発行 (通知・分析は非同期にイベントで反応する)

決済の与信が失敗しても保存済みの注文は巻き戻さない。
その場合 order.placed は発行されず、PLACED の注文だけが残る。
"""

import logging
from typing import Protocol
from uuid import uuid4

from ..errors import StateError
from ..payments.models import AuthorizeRequest
from ..payments.service import PaymentService
from ..publishing import EventPublisher
from .models import (
    STATUS_CANCELLED,
    STATUS_PLACED,
    STATUS_SHIPPED,
    CancelOrderRequest,
    GetOrderRequest,
    Order,
    PlaceOrderRequest,
    SearchOrdersRequest,
    ShipOrderRequest,
)
from .repo import OrderRepo

logger = logging.getLogger(__name__)


class OrderService(Protocol):
    async def search_orders(self, req: SearchOrdersRequest) -> list[Order]: ...

    async def get_order(self, req: GetOrderRequest) -> Order: ...

    async def place_order(self, req: PlaceOrderRequest) -> Order: ...

    async def ship_order(self, req: ShipOrderRequest) -> Order: ...

    async def cancel_order(self, req: CancelOrderRequest) -> Order: ...


class OrderServiceHandler:
    def __init__(
        self,
        repo: OrderRepo,
        publisher: EventPublisher,
        payment_service: PaymentService,
    ):
        self.repo = repo
        self.publisher = publisher
        self.payment_service = payment_service

    async def search_orders(self, req: SearchOrdersRequest) -> list[Order]:
        logger.info("Searching orders for customer")
        return await self.repo.search()

    async def get_order(self, req: GetOrderRequest) -> Order:
        logger.info("Fetching order: %s", req.order_id)
        return await self.repo.get(req.order_id)

    async def place_order(self, req: PlaceOrderRequest) -> Order:
        logger.info("Placing order for '%s' x%d", req.item_name, req.quantity)

        order = await self.repo.create(
            Order(
                item_id=req.item_id,
                item_name=req.item_name,
                quantity=req.quantity,
                price=req.price,
                total=req.price * req.quantity,
                status=STATUS_PLACED,
            )
        )

        await self.payment_service.authorize(
            AuthorizeRequest(
                order_id=order.order_id,
                total=order.total,
                processor_id=req.processor_id,
                processor_token=req.processor_token,
            )
        )

        await self.publisher.publish("order.placed", order)
        return order

    async def ship_order(self, req: ShipOrderRequest) -> Order:
        """倉庫が出荷したときに呼ばれる。"""
        order = await self.repo.get(req.order_id)

        if order.status == STATUS_CANCELLED:
            raise StateError(f"Can't ship cancelled order: {order.order_id}")
        if order.status == STATUS_SHIPPED:
            logger.info("Order already shipped: %s", order)
            return order

        logger.info("Shipping order: %s", order.order_id)
        order.status = STATUS_SHIPPED
        order.tracking_number = uuid4().hex[:10].upper()
        order = await self.repo.update(order)

        await self.publisher.publish("order.shipped", order)
        return order

    async def cancel_order(self, req: CancelOrderRequest) -> Order:
        """
        キャンセルを開始する。

        返金などの後続処理はイベントで非同期に行われるので、
        この呼び出しが戻った時点ではまだ完了していないことがある。
        """
        order = await self.repo.get(req.order_id)

        if order.status == STATUS_CANCELLED:
            logger.info("Order already cancelled: %s", order)
            return order

        logger.info("Cancelling order: %s", order)
        order.status = STATUS_CANCELLED
        order = await self.repo.update(order)

        await self.publisher.publish("order.cancelled", order)
        return order
