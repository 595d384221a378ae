"""
ブローカー — ディスパッチャ

購読ごとに 1 つのループ (asyncio タスク) を持ち、配信されたイベントを
ハンドラに渡す。

  - ハンドラは 1 イベントにつき 1 回だけ呼ばれる
  - ハンドラが成功しても失敗しても、必ず ACK する (再配信しない)
  - 停止でキャンセルされた処理中のイベントは ACK しない (ack_wait 後に再配信)
  - ハンドラの例外はサブジェクトとグループ名を付けてログに出し、握りつぶす
  - 通信エラー (TransportError) はループを終了させる
  - 停止後、未 ACK のイベントがなければコンシューマ名をグループから外す

リトライやデッドレターは持たない。失敗し続けるハンドラは、ログを残して
該当イベントを消費済みとして扱う。
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..errors import TransportError
from .connection import Event, Subscription

logger = logging.getLogger(__name__)

Handler = Callable[[Event], Awaitable[None]]


class Dispatcher:
    def __init__(
        self,
        subscription: Subscription,
        handler: Handler,
        batch_size: int = 10,
        fetch_timeout: float = 1.0,
    ):
        self.subscription = subscription
        self.handler = handler
        self.batch_size = batch_size
        self.fetch_timeout = fetch_timeout
        self.task: asyncio.Task | None = None
        self.shutdown_event = asyncio.Event()

    @property
    def group(self) -> str:
        return self.subscription.group

    async def dispatch(self, event: Event) -> None:
        try:
            logger.info("Handling event: %s/%s", event.subject, self.group)
            await self.handler(event)
        except Exception:
            logger.exception("Error handling event: %s/%s", event.subject, self.group)
        # CancelledError はここまで来ないので ACK されない
        await event.ack()

    async def run_once(self) -> int:
        """今配信可能なイベントをブロックせずに処理し、件数を返す。"""
        events = await self.subscription.fetch(self.batch_size, timeout=None)
        for event in events:
            await self.dispatch(event)
        return len(events)

    async def run(self) -> None:
        logger.info("Dispatching %s -> %s", self.subscription.filter_subject, self.group)
        try:
            while not self.shutdown_event.is_set():
                events = await self.subscription.fetch(self.batch_size, timeout=self.fetch_timeout)
                for event in events:
                    if self.shutdown_event.is_set():
                        break
                    await self.dispatch(event)
        except asyncio.CancelledError:
            logger.info("Dispatcher stopped: %s", self.group)
            raise
        except Exception:
            logger.exception("Dispatcher terminated: %s", self.group)
            raise

    def start(self) -> asyncio.Task:
        self.shutdown_event.clear()
        self.task = asyncio.create_task(self.run(), name=f"dispatch:{self.group}")
        return self.task

    async def stop(self) -> None:
        """
        処理中のハンドラを待たずにループを止める。

        shutdown_event でループを抜けさせ、ブロック中の fetch や
        ハンドラはキャンセルで打ち切る。
        """
        self.shutdown_event.set()
        task, self.task = self.task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, TransportError):
                pass

        try:
            await self.subscription.release()
        except TransportError as e:
            logger.warning("Could not release consumer %s: %s", self.subscription.consumer, e)


def attach(subscription: Subscription, handler: Handler, **kwargs) -> Dispatcher:
    """購読にハンドラを結び付け、ディスパッチループを開始する。"""
    dispatcher = Dispatcher(subscription, handler, **kwargs)
    dispatcher.start()
    return dispatcher
