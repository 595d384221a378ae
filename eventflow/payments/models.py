"""
Payment Service — DTO 定義

payment.* イベントのペイロードには Transaction をそのまま使う。
payment.chargeback のペイロードは order_id を含むので、
Order Service 側では CancelOrderRequest としてデコードできる。
"""

from pydantic import BaseModel

STATUS_AUTHORIZED = "AUTHORIZED"
STATUS_CHARGED = "CHARGED"
STATUS_CHARGEBACK = "CHARGEBACK"
STATUS_REFUNDED = "REFUNDED"

PROCESSOR_STRIPE = "STRIPE"
PROCESSOR_APPLE_PAY = "APPLE_PAY"


class Transaction(BaseModel):
    """
    注文に紐づく決済取引

    状態遷移:
        AUTHORIZED → CHARGED
        AUTHORIZED / CHARGED → REFUNDED | CHARGEBACK  (どちらも終端)
    """
    transaction_id: str = ""
    order_id: str
    total: int
    status: str = STATUS_AUTHORIZED
    processor_id: str = ""
    processor_token: str = ""

    def __str__(self) -> str:
        return (
            f"Transaction[ID:{self.transaction_id}, "
            f"OrderID:{self.order_id}, Status:{self.status}]"
        )


class SearchTransactionsCriteria(BaseModel):
    pass


class GetTransactionRequest(BaseModel):
    transaction_id: str


class AuthorizeRequest(BaseModel):
    order_id: str
    total: int
    processor_id: str = ""
    processor_token: str = ""


class ChargeRequest(BaseModel):
    transaction_id: str = ""
    order_id: str = ""


class ChargebackRequest(BaseModel):
    transaction_id: str


class RefundRequest(BaseModel):
    transaction_id: str = ""
    order_id: str = ""
