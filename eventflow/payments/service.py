"""
Payment Service — 与信・売上確定・返金・チャージバック

本物のカード決済はしない。取引の状態を更新してイベントを発行するだけ。

  authorize   与信 (注文作成時に Order Service から同期で呼ばれる)
  charge      与信済みの金額を確定する
  refund      注文キャンセル時に返金する (order.cancelled に反応)
  chargeback  カード会社からの通知。payment.chargeback を受けて注文がキャンセルされる

REFUNDED と CHARGEBACK は終端。終端に達した取引への返金・チャージバックは何もしない。
"""

import logging
from typing import Protocol

from ..errors import StateError
from ..publishing import EventPublisher
from .models import (
    STATUS_AUTHORIZED,
    STATUS_CHARGEBACK,
    STATUS_CHARGED,
    STATUS_REFUNDED,
    AuthorizeRequest,
    ChargebackRequest,
    ChargeRequest,
    GetTransactionRequest,
    RefundRequest,
    SearchTransactionsCriteria,
    Transaction,
)
from .repo import TransactionRepo

logger = logging.getLogger(__name__)

REVERSED = (STATUS_REFUNDED, STATUS_CHARGEBACK)


class PaymentService(Protocol):
    async def search_transactions(self, criteria: SearchTransactionsCriteria) -> list[Transaction]: ...

    async def get_transaction(self, req: GetTransactionRequest) -> Transaction: ...

    async def authorize(self, req: AuthorizeRequest) -> Transaction: ...

    async def charge(self, req: ChargeRequest) -> Transaction: ...

    async def chargeback(self, req: ChargebackRequest) -> Transaction: ...

    async def refund(self, req: RefundRequest) -> Transaction: ...


class PaymentServiceHandler:
    def __init__(self, repo: TransactionRepo, publisher: EventPublisher):
        self.repo = repo
        self.publisher = publisher

    async def search_transactions(self, criteria: SearchTransactionsCriteria) -> list[Transaction]:
        logger.info("Searching customer's transactions")
        return await self.repo.search()

    async def get_transaction(self, req: GetTransactionRequest) -> Transaction:
        logger.info("Fetching transaction: %s", req.transaction_id)
        return await self.repo.get(req.transaction_id)

    async def authorize(self, req: AuthorizeRequest) -> Transaction:
        logger.info("Authorizing payment of %d for order %s", req.total, req.order_id)

        transaction = await self.repo.create(
            Transaction(
                order_id=req.order_id,
                total=req.total,
                status=STATUS_AUTHORIZED,
                processor_id=req.processor_id,
                processor_token=req.processor_token,
            )
        )

        await self.publisher.publish("payment.authorized", transaction)
        return transaction

    async def charge(self, req: ChargeRequest) -> Transaction:
        transaction = await self.repo.get(req.transaction_id, req.order_id)

        if transaction.status in REVERSED:
            raise StateError(f"Transaction already reversed: {transaction}")
        if transaction.status == STATUS_CHARGED:
            logger.info("Transaction already processed; ignoring charge: %s", transaction)
            return transaction

        logger.info("Charging payment method: %s", transaction)
        transaction.status = STATUS_CHARGED
        transaction = await self.repo.update(transaction)

        await self.publisher.publish("payment.charged", transaction)
        return transaction

    async def refund(self, req: RefundRequest) -> Transaction:
        transaction = await self.repo.get(req.transaction_id, req.order_id)

        if transaction.status in REVERSED:
            logger.info("Transaction already reversed; ignoring refund: %s", transaction)
            return transaction

        logger.info("Processing refund: %s", transaction)
        transaction.status = STATUS_REFUNDED
        transaction = await self.repo.update(transaction)

        await self.publisher.publish("payment.refunded", transaction)
        return transaction

    async def chargeback(self, req: ChargebackRequest) -> Transaction:
        transaction = await self.repo.get(req.transaction_id)

        if transaction.status in REVERSED:
            logger.info("Transaction already reversed; ignoring chargeback: %s", transaction)
            return transaction

        logger.info("Processing chargeback: %s", transaction)
        transaction.status = STATUS_CHARGEBACK
        transaction = await self.repo.update(transaction)

        await self.publisher.publish("payment.chargeback", transaction)
        return transaction
