"""
ブローカー接続 — Redis Streams による永続イベントログ

Redis Pub/Sub は fire-and-forget なので、購読者が落ちている間のイベントは
失われる。ここでは Redis Streams のコンシューマグループを使い、
永続化・負荷分散・ACK を実現する。

  ┌───────────┐  XADD order.placed   ┌──────────────────────────┐
  │ Publisher │ ───────────────────▶ │ stream ORDERS (order.>)  │
  └───────────┘                      └──────┬──────────┬────────┘
                                            │          │  グループごとに独立したコピー
                                  group A   │          │  group B
                                  ┌─────────▼──┐    ┌──▼─────────┐
                                  │ instance 1 │    │ instance 1 │
                                  │ instance 2 │    └────────────┘
                                  └────────────┘
                          同じグループ内のインスタンスは競合コンシューマ
                          (1 イベントはどれか 1 つにだけ届く)

Redis のキー構成 (prefix = "eventflow"):
  {prefix}:streams                               ストリーム名の集合
  {prefix}:stream:{name}                         イベントログ本体 (Redis Stream)
  {prefix}:stream:{name}:config                  StreamConfig (JSON)
  {prefix}:stream:{name}:consumers               グループ名の集合
  {prefix}:stream:{name}:consumer:{group}        ConsumerConfig (JSON)
  {prefix}:stream:{name}:consumer:{group}:active 生存キー (inactive_threshold で失効)
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TypeVar
from uuid import uuid4

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..errors import TransportError
from . import subjects
from .models import ConsumerConfig, DeliverPolicy, PubAck, StreamConfig

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class BrokerAPIError(Exception):
    """ブローカーが操作を拒否した (code は HTTP 風のステータス)"""

    def __init__(self, code: int, description: str):
        super().__init__(f"[{code}] {description}")
        self.code = code
        self.description = description


class StreamNotFoundError(BrokerAPIError):
    def __init__(self, stream: str):
        super().__init__(404, f"stream not found: {stream}")


@asynccontextmanager
async def transport(action: str):
    """Redis の接続エラーを TransportError に変換する。"""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        raise TransportError(f"{action}: {e}") from e


@dataclass
class Event:
    """購読者に配信された 1 件のイベント"""

    subject: str
    data: bytes
    headers: dict[str, str]
    stream: str
    group: str
    seq: str
    subscription: "Subscription" = field(repr=False)
    acked: bool = False

    async def ack(self) -> None:
        if self.acked:
            return
        await self.subscription.ack(self.seq)
        self.acked = True

    def json(self):
        return json.loads(self.data)

    def decode(self, model: type[M]) -> M:
        return model.model_validate_json(self.data)


class Subscription:
    """
    コンシューマグループへの 1 インスタンス分の接続。

    インスタンスごとに別のコンシューマ名を使うので、同じグループに
    複数のプロセスが接続すると Redis が配信を振り分ける。
    """

    def __init__(
        self,
        broker: "RedisBroker",
        stream: str,
        config: ConsumerConfig,
        consumer: str,
    ):
        self.broker = broker
        self.stream = stream
        self.config = config
        self.consumer = consumer

    @property
    def group(self) -> str:
        return self.config.durable_name

    @property
    def filter_subject(self) -> str:
        return self.config.filter_subject

    async def fetch(self, batch: int = 10, timeout: float | None = None) -> list[Event]:
        """
        配信可能なイベントを最大 batch 件取り出す。

        1. ACK 期限 (ack_wait) を過ぎた未 ACK イベントを引き取る (再配信)
        2. 新しいイベントを読む。timeout=None ならブロックしない
        3. フィルタに合わないサブジェクトは ACK して読み飛ばす
        """
        key = self.broker.stream_key(self.stream)
        async with transport(f"fetch {self.stream}/{self.group}"):
            await self.broker.touch(self.stream, self.config)
            try:
                entries = await self._claim_overdue(key, batch)
                if len(entries) < batch:
                    entries += await self._read_new(key, batch - len(entries), timeout)
            except ResponseError as e:
                if "NOGROUP" in str(e):
                    raise TransportError(
                        f"Consumer group no longer exists: {self.stream}/{self.group}"
                    ) from e
                raise TransportError(f"fetch {self.stream}/{self.group}: {e}") from e

            events: list[Event] = []
            for entry_id, fields in entries:
                subject = fields.get("subject", "")
                if not subjects.matches(self.filter_subject, subject):
                    await self.broker.redis.xack(key, self.group, entry_id)
                    continue
                events.append(
                    Event(
                        subject=subject,
                        data=fields.get("data", "").encode("utf-8"),
                        headers=json.loads(fields.get("headers") or "{}"),
                        stream=self.stream,
                        group=self.group,
                        seq=entry_id,
                        subscription=self,
                    )
                )
            return events

    async def ack(self, seq: str) -> None:
        async with transport(f"ack {self.stream}/{self.group}"):
            await self.broker.redis.xack(self.broker.stream_key(self.stream), self.group, seq)

    async def release(self) -> None:
        """未 ACK のイベントを抱えていなければ、コンシューマ名をグループから外す。"""
        key = self.broker.stream_key(self.stream)
        async with transport(f"release {self.stream}/{self.group}"):
            try:
                pending = await self.broker.redis.xpending_range(
                    key, self.group, min="-", max="+", count=1, consumername=self.consumer
                )
                if pending:
                    return
                await self.broker.redis.xgroup_delconsumer(key, self.group, self.consumer)
            except ResponseError as e:
                raise TransportError(f"release {self.stream}/{self.group}: {e}") from e

    async def _claim_overdue(self, key: str, count: int) -> list:
        min_idle = int(self.config.ack_wait.total_seconds() * 1000)
        resp = await self.broker.redis.xautoclaim(
            key, self.group, self.consumer, min_idle, start_id="0-0", count=count
        )
        claimed = [entry for entry in resp[1] if entry and entry[1]]
        if claimed:
            logger.info(
                "Redelivering %d overdue event(s): %s/%s",
                len(claimed), self.stream, self.group,
            )
        return claimed

    async def _read_new(self, key: str, count: int, timeout: float | None) -> list:
        resp = await self.broker.redis.xreadgroup(
            self.group,
            self.consumer,
            {key: ">"},
            count=count,
            block=int(timeout * 1000) if timeout else None,
        )
        if not resp:
            return []
        return [entry for _, batch in resp for entry in batch]


class RedisBroker:
    """ストリーム/コンシューマ管理とイベントの発行・購読を提供する。"""

    def __init__(self, redis: aioredis.Redis, prefix: str = "eventflow"):
        self.redis = redis
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisBroker":
        return cls(aioredis.from_url(url, decode_responses=True), **kwargs)

    async def close(self) -> None:
        await self.redis.aclose()

    # ── キー ─────────────────────────────────────

    def stream_key(self, stream: str) -> str:
        return f"{self.prefix}:stream:{stream}"

    def _streams_key(self) -> str:
        return f"{self.prefix}:streams"

    def _stream_config_key(self, stream: str) -> str:
        return f"{self.stream_key(stream)}:config"

    def _consumers_key(self, stream: str) -> str:
        return f"{self.stream_key(stream)}:consumers"

    def _consumer_key(self, stream: str, group: str) -> str:
        return f"{self.stream_key(stream)}:consumer:{group}"

    def _active_key(self, stream: str, group: str) -> str:
        return f"{self._consumer_key(stream, group)}:active"

    # ── ストリーム管理 ───────────────────────────

    async def stream_info(self, name: str) -> StreamConfig:
        async with transport(f"stream info {name}"):
            raw = await self.redis.get(self._stream_config_key(name))
        if raw is None:
            raise StreamNotFoundError(name)
        return StreamConfig.model_validate_json(raw)

    async def stream_names(self) -> list[str]:
        async with transport("list streams"):
            return sorted(await self.redis.smembers(self._streams_key()))

    async def add_stream(self, config: StreamConfig) -> StreamConfig:
        self._validate_pattern(config.subjects)
        async with transport(f"add stream {config.name}"):
            if await self.redis.exists(self._stream_config_key(config.name)):
                raise BrokerAPIError(400, f"stream name already in use: {config.name}")
            await self._check_overlap(config)
            await self._write_stream(config)
        return config

    async def update_stream(self, config: StreamConfig) -> StreamConfig:
        await self.stream_info(config.name)
        self._validate_pattern(config.subjects)
        async with transport(f"update stream {config.name}"):
            await self._check_overlap(config)
            await self._write_stream(config)
            if config.max_msgs > 0:
                await self.redis.xtrim(
                    self.stream_key(config.name), maxlen=config.max_msgs, approximate=False
                )
        return config

    async def _streams(self) -> list[StreamConfig]:
        names = await self.redis.smembers(self._streams_key())
        configs = []
        for name in sorted(names):
            raw = await self.redis.get(self._stream_config_key(name))
            if raw is not None:
                configs.append(StreamConfig.model_validate_json(raw))
        return configs

    async def _check_overlap(self, config: StreamConfig) -> None:
        for other in await self._streams():
            if other.name != config.name and subjects.overlaps(other.subjects, config.subjects):
                raise BrokerAPIError(
                    400,
                    f"subjects {config.subjects} overlap with stream {other.name} ({other.subjects})",
                )

    async def _write_stream(self, config: StreamConfig) -> None:
        await self.redis.set(self._stream_config_key(config.name), config.model_dump_json())
        await self.redis.sadd(self._streams_key(), config.name)

    @staticmethod
    def _validate_pattern(pattern: str) -> None:
        try:
            subjects.validate(pattern)
        except ValueError as e:
            raise BrokerAPIError(400, str(e)) from e

    # ── コンシューマ管理 ─────────────────────────

    async def add_or_update_consumer(self, stream: str, config: ConsumerConfig) -> ConsumerConfig:
        """
        コンシューマグループを作成、または設定を上書きする。

        前回の設定が残っていても生存キーが失効していれば、
        グループを破棄して作り直す (非アクティブなグループの回収)。
        """
        stream_config = await self.stream_info(stream)
        self._validate_pattern(config.filter_subject)
        if not subjects.is_subset(config.filter_subject, stream_config.subjects):
            raise BrokerAPIError(
                400,
                f"filter subject {config.filter_subject} does not match "
                f"stream subjects {stream_config.subjects}",
            )

        group = config.durable_name
        key = self.stream_key(stream)
        async with transport(f"add consumer {stream}/{group}"):
            existing = await self.redis.get(self._consumer_key(stream, group))
            if existing is not None and not await self.redis.exists(self._active_key(stream, group)):
                logger.info("Consumer %s/%s passed its inactive threshold; reclaiming.", stream, group)
                await self._delete_consumer(stream, group)

            start = "$" if config.deliver_policy == DeliverPolicy.NEW else "0"
            try:
                await self.redis.xgroup_create(key, group, id=start, mkstream=True)
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise BrokerAPIError(500, str(e)) from e

            await self.redis.set(self._consumer_key(stream, group), config.model_dump_json())
            await self.redis.sadd(self._consumers_key(stream), group)
            await self.touch(stream, config)
        return config

    async def consumer_info(self, stream: str, group: str) -> ConsumerConfig:
        async with transport(f"consumer info {stream}/{group}"):
            raw = await self.redis.get(self._consumer_key(stream, group))
        if raw is None:
            raise BrokerAPIError(404, f"consumer not found: {stream}/{group}")
        return ConsumerConfig.model_validate_json(raw)

    async def consumer_names(self, stream: str) -> list[str]:
        async with transport(f"list consumers {stream}"):
            return sorted(await self.redis.smembers(self._consumers_key(stream)))

    async def touch(self, stream: str, config: ConsumerConfig) -> None:
        """グループの生存キーを延長する。"""
        ttl = int(config.inactive_threshold.total_seconds() * 1000)
        await self.redis.set(self._active_key(stream, config.durable_name), "1", px=ttl)

    async def _delete_consumer(self, stream: str, group: str) -> None:
        key = self.stream_key(stream)
        if await self.redis.exists(key):
            await self.redis.xgroup_destroy(key, group)
        await self.redis.delete(self._consumer_key(stream, group))
        await self.redis.srem(self._consumers_key(stream), group)

    # ── 発行 / 購読 ──────────────────────────────

    async def publish(self, subject: str, data: bytes, headers: dict[str, str] | None = None) -> PubAck:
        """
        サブジェクトにマッチするストリームへイベントを追記する。

        ストリームの max_msgs を超えた古いイベントは XADD MAXLEN で破棄される。
        """
        subjects.validate(subject, wildcards=False)
        async with transport(f"publish {subject}"):
            for config in await self._streams():
                if subjects.matches(config.subjects, subject):
                    break
            else:
                raise BrokerAPIError(503, f"no stream accepts subject: {subject}")

            seq = await self.redis.xadd(
                self.stream_key(config.name),
                {
                    "subject": subject,
                    "data": data.decode("utf-8"),
                    "headers": json.dumps(headers or {}),
                },
                maxlen=config.max_msgs if config.max_msgs > 0 else None,
                approximate=False,
            )
        return PubAck(stream=config.name, seq=seq)

    async def subscribe(self, stream: str, group: str) -> Subscription:
        config = await self.consumer_info(stream, group)
        return Subscription(self, stream, config, consumer=f"{group}-{uuid4().hex[:8]}")
