"""
サービスの組み立て

各サービスはトランスポート (HTTP / イベント) を知らない。
API とイベントルートの両方から同じインスタンスを使う。
"""

from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from .analytics.service import AnalyticsService, AnalyticsServiceHandler
from .notifications.service import NotificationService, NotificationServiceHandler
from .orders.models import Order
from .orders.repo import OrderRepo
from .orders.service import OrderService, OrderServiceHandler
from .payments.models import Transaction
from .payments.repo import TransactionRepo
from .payments.service import PaymentService, PaymentServiceHandler
from .publishing import EventPublisher
from .store import RecordStore


@dataclass
class Services:
    orders: OrderService
    payments: PaymentService
    notifications: NotificationService
    analytics: AnalyticsService
    order_repo: OrderRepo
    transaction_repo: TransactionRepo


def build_services(session_factory: sessionmaker, publisher: EventPublisher) -> Services:
    order_repo = OrderRepo(RecordStore(session_factory, "orders", Order))
    transaction_repo = TransactionRepo(RecordStore(session_factory, "transactions", Transaction))

    payments = PaymentServiceHandler(transaction_repo, publisher)
    return Services(
        orders=OrderServiceHandler(order_repo, publisher, payments),
        payments=payments,
        notifications=NotificationServiceHandler(publisher),
        analytics=AnalyticsServiceHandler(),  # 発行はしない
        order_repo=order_repo,
        transaction_repo=transaction_repo,
    )


async def populate_fake_data(services: Services) -> None:
    await services.order_repo.populate_fake_data_if_empty()
    await services.transaction_repo.populate_fake_data_if_empty()
