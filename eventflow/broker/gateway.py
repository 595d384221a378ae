"""
ブローカー — イベントゲートウェイ

ワークフローグラフ (ストリームとルートの表) を受け取り、
  1. ストリームごとに ensure_stream
  2. ルートごとに ensure_route
  3. ルートごとにディスパッチャを起動
を行う汎用エンジン。グラフそのものはデータなので、ブローカーなしでも検査できる。
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from .connection import RedisBroker
from .dispatcher import Dispatcher, Handler
from .models import DeliverPolicy, StorageType
from .registrar import ensure_route, ensure_stream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    filter_subject: str
    group: str
    handler: Handler
    description: str = ""


@dataclass(frozen=True)
class StreamRoutes:
    name: str
    subjects: str
    routes: tuple[Route, ...] = field(default_factory=tuple)
    storage: StorageType = StorageType.FILE
    max_msgs: int = 10


class EventGateway:
    def __init__(
        self,
        broker: RedisBroker,
        deliver_policy: DeliverPolicy = DeliverPolicy.NEW,
        inactive_threshold: timedelta = timedelta(days=14),
        batch_size: int = 10,
        fetch_timeout: float = 1.0,
    ):
        self.broker = broker
        self.deliver_policy = deliver_policy
        self.inactive_threshold = inactive_threshold
        self.batch_size = batch_size
        self.fetch_timeout = fetch_timeout
        self.dispatchers: list[Dispatcher] = []

    async def register(self, graph: list[StreamRoutes]) -> list[Dispatcher]:
        """ストリームとルートを調整し、未起動のディスパッチャを返す。"""
        dispatchers = []
        for stream in graph:
            logger.info("Setting up event stream: %s -> %s", stream.name, stream.subjects)
            await ensure_stream(
                self.broker, stream.name, stream.subjects, stream.storage, stream.max_msgs
            )
            for route in stream.routes:
                subscription = await ensure_route(
                    self.broker,
                    stream.name,
                    route.filter_subject,
                    route.group,
                    self.deliver_policy,
                    self.inactive_threshold,
                )
                dispatchers.append(
                    Dispatcher(
                        subscription,
                        route.handler,
                        batch_size=self.batch_size,
                        fetch_timeout=self.fetch_timeout,
                    )
                )
        self.dispatchers.extend(dispatchers)
        return dispatchers

    async def start(self, graph: list[StreamRoutes]) -> list[Dispatcher]:
        dispatchers = await self.register(graph)
        for dispatcher in dispatchers:
            dispatcher.start()
        logger.info("Event gateway running %d route(s)", len(dispatchers))
        return dispatchers

    async def run_once(self) -> int:
        """登録済みの全ルートを 1 巡ずつ処理する (テスト・手動実行用)。"""
        handled = 0
        for dispatcher in self.dispatchers:
            handled += await dispatcher.run_once()
        return handled

    async def close(self) -> None:
        for dispatcher in self.dispatchers:
            await dispatcher.stop()
        self.dispatchers.clear()
