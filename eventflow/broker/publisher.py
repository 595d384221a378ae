"""
ブローカー — パブリッシャー

ドメインのペイロードを正規化した JSON にしてサブジェクトに発行する。
ブローカーがストリームへの書き込みを受け付けた時点で戻り、
下流のコンシューマの処理は待たない。
"""

import json
import logging
from typing import Any

from pydantic import BaseModel

from ..errors import TransportError
from .connection import BrokerAPIError, RedisBroker
from .models import PubAck

logger = logging.getLogger(__name__)


def encode(payload: Any) -> bytes:
    """キー順・区切り文字を固定した UTF-8 JSON にする。"""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


class Publisher:
    def __init__(self, broker: RedisBroker):
        self.broker = broker

    async def publish(self, subject: str, payload: Any) -> PubAck:
        logger.info("Publishing event: %s", subject)
        try:
            return await self.broker.publish(subject, encode(payload))
        except BrokerAPIError as e:
            raise TransportError(f"Broker rejected {subject}: {e}") from e
