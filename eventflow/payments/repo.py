"""
Payment Service — リポジトリ

取引は transaction_id と order_id の両方をキーにして保存するので、
どちらの ID からでも引ける。
"""

import logging
import secrets
from uuid import uuid4

from ..errors import NotFoundError
from ..store import RecordStore
from .models import (
    PROCESSOR_APPLE_PAY,
    PROCESSOR_STRIPE,
    STATUS_AUTHORIZED,
    STATUS_CHARGED,
    Transaction,
)

logger = logging.getLogger(__name__)


class TransactionRepo:
    def __init__(self, store: RecordStore[Transaction]):
        self.store = store

    async def search(self) -> list[Transaction]:
        return await self.store.values()

    async def get(self, transaction_id: str, order_id: str = "") -> Transaction:
        """取引 ID で探し、見つからなければ注文 ID で探す。"""
        transaction = await self.store.get(transaction_id)
        if transaction is None:
            transaction = await self.store.get(order_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}/{order_id}")
        return transaction

    async def create(self, transaction: Transaction) -> Transaction:
        transaction.transaction_id = uuid4().hex[:8].upper()
        return await self.update(transaction)

    async def update(self, transaction: Transaction) -> Transaction:
        await self.store.put(transaction.transaction_id, transaction)
        await self.store.put(transaction.order_id, transaction)
        return transaction

    async def populate_fake_data_if_empty(self) -> None:
        if not await self.store.is_empty():
            logger.info("Fake transaction data already present.")
            return

        logger.info("Loading fake transaction data.")
        await self.update(Transaction(
            transaction_id="X",
            order_id="123",
            total=1999,
            status=STATUS_CHARGED,
            processor_id=PROCESSOR_STRIPE,
            processor_token=secrets.token_hex(4),
        ))
        await self.update(Transaction(
            transaction_id="Y",
            order_id="456",
            total=2700,
            status=STATUS_AUTHORIZED,
            processor_id=PROCESSOR_STRIPE,
            processor_token=secrets.token_hex(4),
        ))
        await self.update(Transaction(
            transaction_id="Z",
            order_id="789",
            total=44997,
            status=STATUS_CHARGED,
            processor_id=PROCESSOR_APPLE_PAY,
            processor_token=secrets.token_hex(4),
        ))
