"""
イベントワーカー — ワークフローグラフのルートだけを動かす

  python -m eventflow.worker

複数のターミナルで起動すると、同じグループのイベントが
インスタンス間で負荷分散される様子を確認できる。
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import config
from .bootstrap import build_services, populate_fake_data
from .broker import EventGateway, Publisher, RedisBroker
from .store import create_schema
from .workflow import build_workflow

logger = logging.getLogger(__name__)


async def run_worker() -> None:
    engine = create_async_engine(config.DATABASE_URL, echo=False)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    broker = RedisBroker.from_url(config.REDIS_URL)
    gateway = EventGateway(broker, inactive_threshold=config.INACTIVE_THRESHOLD)

    try:
        await create_schema(engine)
        services = build_services(async_session, Publisher(broker))
        if config.SEED_DATA:
            await populate_fake_data(services)

        dispatchers = await gateway.start(build_workflow(services, config.STREAM_MAX_MSGS))
        logger.info("Event worker running; press Ctrl+C to exit.")

        # どれか 1 つのループが通信エラーで終了したらワーカーごと止める
        await asyncio.gather(*(d.task for d in dispatchers))
    finally:
        await gateway.close()
        await broker.close()
        await engine.dispose()
        logger.info("Bye, bye!")


def main() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
