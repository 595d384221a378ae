"""
Order Service — DTO 定義

注文の現在の状態 (Order) と、サービス操作のリクエスト。
order.placed / order.cancelled などのイベントのペイロードにも Order をそのまま使う。
"""

from pydantic import BaseModel

STATUS_PLACED = "PLACED"
STATUS_SHIPPED = "SHIPPED"
STATUS_FULFILLED = "FULFILLED"
STATUS_CANCELLED = "CANCELLED"


class Order(BaseModel):
    """
    注文

    状態遷移:
        PLACED → SHIPPED → FULFILLED  (FULFILLED は外部プロセスのみ)
        PLACED / SHIPPED → CANCELLED  (CANCELLED は終端)
    """
    order_id: str = ""
    item_id: str
    item_name: str = ""
    quantity: int
    price: int
    total: int
    status: str = STATUS_PLACED
    tracking_number: str | None = None

    def __str__(self) -> str:
        return f"Order[ID:{self.order_id}, Status:{self.status}]"


class SearchOrdersRequest(BaseModel):
    pass


class GetOrderRequest(BaseModel):
    order_id: str


class PlaceOrderRequest(BaseModel):
    item_id: str
    item_name: str = ""
    quantity: int
    price: int
    processor_id: str = ""
    processor_token: str = ""


class ShipOrderRequest(BaseModel):
    order_id: str


class CancelOrderRequest(BaseModel):
    order_id: str
