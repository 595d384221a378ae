import pytest
import pytest_asyncio

from eventflow.bootstrap import build_services, populate_fake_data
from eventflow.broker import EventGateway, Publisher
from eventflow.orders.models import (
    STATUS_CANCELLED,
    CancelOrderRequest,
    GetOrderRequest,
    Order,
    PlaceOrderRequest,
)
from eventflow.payments.models import (
    STATUS_CHARGEBACK,
    STATUS_REFUNDED,
    ChargebackRequest,
    GetTransactionRequest,
)
from eventflow.workflow import build_workflow


async def _drain(gateway, rounds=10):
    """イベントの連鎖が止まるまでルートを回す。"""
    for _ in range(rounds):
        if await gateway.run_once() == 0:
            return
    raise AssertionError("workflow did not settle")


class _NullPublisher:
    async def publish(self, subject, payload):
        pass


def _offline_services():
    return build_services(None, _NullPublisher())


@pytest_asyncio.fixture
async def wired(session_factory, broker):
    services = build_services(session_factory, Publisher(broker))
    await populate_fake_data(services)
    gateway = EventGateway(broker)
    await gateway.register(build_workflow(services))
    yield services, gateway
    await gateway.close()


class TestWorkflowTable:
    """ルート表そのもののテスト (ブローカー不要)"""

    def test_streams_and_routes(self):
        graph = build_workflow(_offline_services())

        assert [(s.name, s.subjects) for s in graph] == [
            ("ORDERS", "order.>"),
            ("PAYMENTS", "payment.>"),
            ("NOTIFICATIONS", "notification.>"),
        ]
        routes = {s.name: [(r.filter_subject, r.group) for r in s.routes] for s in graph}
        assert routes["ORDERS"] == [
            ("order.placed", "notify-on-placed"),
            ("order.cancelled", "notify-on-cancelled"),
            ("order.cancelled", "refund-on-cancel"),
            ("order.>", "analytics-orders"),
        ]
        assert routes["PAYMENTS"] == [
            ("payment.chargeback", "cancel-on-chargeback"),
            ("payment.>", "analytics-payments"),
        ]
        assert routes["NOTIFICATIONS"] == [("notification.>", "analytics-notifications")]

    def test_retention(self):
        services = _offline_services()
        assert {s.max_msgs for s in build_workflow(services)} == {10}
        assert {s.max_msgs for s in build_workflow(services, max_msgs=3)} == {3}


class TestSaga:
    """ブローカー経由のイベント連鎖のテスト"""

    @pytest.mark.asyncio
    async def test_register_is_repeatable(self, wired, broker):
        services, gateway = wired

        await gateway.register(build_workflow(services))

        assert await broker.stream_names() == ["NOTIFICATIONS", "ORDERS", "PAYMENTS"]
        assert await broker.consumer_names("ORDERS") == [
            "analytics-orders",
            "notify-on-cancelled",
            "notify-on-placed",
            "refund-on-cancel",
        ]

    @pytest.mark.asyncio
    async def test_place_order_flows_to_notifications(self, wired):
        services, gateway = wired

        await services.orders.place_order(
            PlaceOrderRequest(item_id="ABC", item_name="Kit", quantity=2, price=100)
        )
        await _drain(gateway)

        assert services.analytics.summary() == {
            "notification.orderPlaced": 1,
            "order.placed": 1,
            "payment.authorized": 1,
        }

    @pytest.mark.asyncio
    async def test_chargeback_cancels_order(self, wired):
        services, gateway = wired

        await services.payments.chargeback(ChargebackRequest(transaction_id="X"))
        await _drain(gateway)

        order = await services.orders.get_order(GetOrderRequest(order_id="123"))
        transaction = await services.payments.get_transaction(
            GetTransactionRequest(transaction_id="X")
        )
        assert order.status == STATUS_CANCELLED
        assert transaction.status == STATUS_CHARGEBACK
        assert services.analytics.summary() == {
            "notification.orderCancelled": 1,
            "order.cancelled": 1,
            "payment.chargeback": 1,
        }

    @pytest.mark.asyncio
    async def test_cancel_refunds_transaction(self, wired):
        services, gateway = wired

        await services.orders.cancel_order(CancelOrderRequest(order_id="456"))
        await _drain(gateway)

        transaction = await services.payments.get_transaction(
            GetTransactionRequest(transaction_id="Y")
        )
        assert transaction.status == STATUS_REFUNDED
        assert services.analytics.summary() == {
            "notification.orderCancelled": 1,
            "order.cancelled": 1,
            "payment.refunded": 1,
        }

    @pytest.mark.asyncio
    async def test_failing_route_does_not_block_others(self, wired):
        services, gateway = wired
        # 取引のない注文なので返金ルートは失敗する
        await services.order_repo.update(
            Order(order_id="999", item_id="XYZ", quantity=1, price=5, total=5)
        )

        await services.orders.cancel_order(CancelOrderRequest(order_id="999"))
        await _drain(gateway)

        assert services.analytics.summary() == {
            "notification.orderCancelled": 1,
            "order.cancelled": 1,
        }
        assert await gateway.run_once() == 0
