"""
ブローカー — ストリーム/コンシューマ設定

ストリームとコンシューマグループの設定は Redis に JSON として保存され、
ensure_stream / ensure_route が毎回同じ内容で上書きする (冪等)。
"""

from datetime import timedelta
from enum import Enum

from pydantic import BaseModel, field_validator


class StorageType(str, Enum):
    FILE = "file"
    MEMORY = "memory"


class DeliverPolicy(str, Enum):
    """新しく作成したグループがどのイベントから受け取るか"""

    ALL = "all"  # ストリームに残っている過去イベントも含む
    NEW = "new"  # 作成後に発行されたイベントのみ


class StreamConfig(BaseModel):
    name: str
    subjects: str
    storage: StorageType = StorageType.FILE
    max_msgs: int = -1

    @field_validator("max_msgs")
    @classmethod
    def validate_max_msgs(cls, v: int) -> int:
        if v == 0 or v < -1:
            raise ValueError("max_msgs must be positive, or -1 for unlimited")
        return v


class ConsumerConfig(BaseModel):
    durable_name: str
    filter_subject: str
    deliver_policy: DeliverPolicy = DeliverPolicy.NEW
    inactive_threshold: timedelta = timedelta(days=14)
    ack_wait: timedelta = timedelta(seconds=30)


class PubAck(BaseModel):
    stream: str
    seq: str
