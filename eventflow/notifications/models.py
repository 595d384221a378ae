from pydantic import BaseModel


class OrderNotificationRequest(BaseModel):
    """注文に関する通知のコンテキスト (order.* のペイロードからデコードする)"""
    order_id: str
