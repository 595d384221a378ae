"""
Notification Service — 注文に関する通知

実際にはメールも SMS も送らない。ログを出して notification.* を発行するだけ。
"""

import logging
from typing import Protocol

from ..publishing import EventPublisher
from .models import OrderNotificationRequest

logger = logging.getLogger(__name__)


class NotificationService(Protocol):
    async def send_order_placed_message(self, req: OrderNotificationRequest) -> None: ...

    async def send_order_cancelled_message(self, req: OrderNotificationRequest) -> None: ...


class NotificationServiceHandler:
    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher

    async def send_order_placed_message(self, req: OrderNotificationRequest) -> None:
        """注文を受け付けたことを顧客に知らせる。"""
        logger.info("sendOrderPlacedMessage(OrderID: %s)", req.order_id)
        await self.publisher.publish("notification.orderPlaced", req)

    async def send_order_cancelled_message(self, req: OrderNotificationRequest) -> None:
        """キャンセル処理を開始したことを顧客に知らせる。"""
        logger.info("sendOrderCancelledMessage(OrderID: %s)", req.order_id)
        await self.publisher.publish("notification.orderCancelled", req)
