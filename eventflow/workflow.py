"""
ワークフローグラフ — 注文・決済・通知・分析をつなぐイベントルート表

  ┌───────────────────────────┬────────────────────┬─────────────────────────┬──────────────────────┐
  │ Stream (subjects)         │ Filter             │ Consumer group          │ Action               │
  ├───────────────────────────┼────────────────────┼─────────────────────────┼──────────────────────┤
  │ ORDERS (order.>)          │ order.placed       │ notify-on-placed        │ 注文受付の通知       │
  │                           │ order.cancelled    │ notify-on-cancelled     │ キャンセルの通知     │
  │                           │ order.cancelled    │ refund-on-cancel        │ 取引を返金           │
  │                           │ order.>            │ analytics-orders        │ 分析に記録           │
  │ PAYMENTS (payment.>)      │ payment.chargeback │ cancel-on-chargeback    │ 注文をキャンセル     │
  │                           │ payment.>          │ analytics-payments      │ 分析に記録           │
  │ NOTIFICATIONS (notif..>)  │ notification.>     │ analytics-notifications │ 分析に記録           │
  └───────────────────────────┴────────────────────┴─────────────────────────┴──────────────────────┘

表は起動時に一度だけ組み立て、EventGateway に渡す。
ハンドラはイベントを受け取る側のサービスのリクエスト DTO にデコードして呼び出す。
"""

from .analytics.models import TrackEventRequest
from .bootstrap import Services
from .broker import Event, Route, StreamRoutes
from .notifications.models import OrderNotificationRequest
from .orders.models import CancelOrderRequest
from .payments.models import RefundRequest


def build_workflow(services: Services, max_msgs: int = 10) -> list[StreamRoutes]:
    async def send_placed_notification(event: Event) -> None:
        await services.notifications.send_order_placed_message(
            event.decode(OrderNotificationRequest)
        )

    async def send_cancelled_notification(event: Event) -> None:
        await services.notifications.send_order_cancelled_message(
            event.decode(OrderNotificationRequest)
        )

    async def refund_transaction(event: Event) -> None:
        await services.payments.refund(event.decode(RefundRequest))

    async def cancel_order(event: Event) -> None:
        await services.orders.cancel_order(event.decode(CancelOrderRequest))

    async def track_event(event: Event) -> None:
        await services.analytics.track_event(
            TrackEventRequest(event=event.subject, json_data=event.data.decode("utf-8"))
        )

    return [
        StreamRoutes(
            name="ORDERS",
            subjects="order.>",
            max_msgs=max_msgs,
            routes=(
                Route("order.placed", "notify-on-placed", send_placed_notification,
                      "send placed notification"),
                Route("order.cancelled", "notify-on-cancelled", send_cancelled_notification,
                      "send cancelled notification"),
                Route("order.cancelled", "refund-on-cancel", refund_transaction,
                      "refund linked transaction"),
                Route("order.>", "analytics-orders", track_event,
                      "record analytics event"),
            ),
        ),
        StreamRoutes(
            name="PAYMENTS",
            subjects="payment.>",
            max_msgs=max_msgs,
            routes=(
                Route("payment.chargeback", "cancel-on-chargeback", cancel_order,
                      "cancel linked order"),
                Route("payment.>", "analytics-payments", track_event,
                      "record analytics event"),
            ),
        ),
        StreamRoutes(
            name="NOTIFICATIONS",
            subjects="notification.>",
            max_msgs=max_msgs,
            routes=(
                Route("notification.>", "analytics-notifications", track_event,
                      "record analytics event"),
            ),
        ),
    ]
