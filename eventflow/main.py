"""
eventflow — FastAPI エントリーポイント

起動時に:
  1. レコードストアのテーブルを作成し、空ならサンプルデータを投入
  2. EVENTFLOW_RUN_EVENTS が有効なら、ワークフローグラフのストリームと
     ルートを登録してディスパッチャをバックグラウンドで動かす

起動:
  uvicorn eventflow.main:app      (または eventflow-api)

イベントルートだけを別プロセスで動かす場合は eventflow.worker を使う。
複数のワーカーを起動すると、同じコンシューマグループ内で配信が分散される。

  ┌──────────┐  PUT /order   ┌────────────────┐  order.placed  ┌───────────────┐
  │  Client  │ ────────────▶ │  API (FastAPI) │ ─────────────▶ │ Redis Streams │
  └──────────┘               └────────────────┘                └───────┬───────┘
                                                                       │ consumer groups
                                                         ┌─────────────▼─────────────┐
                                                         │ EventGateway (dispatchers)│
                                                         └───────────────────────────┘
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import api, config
from .bootstrap import build_services, populate_fake_data
from .broker import EventGateway, Publisher, RedisBroker
from .store import create_schema
from .workflow import build_workflow

logger = logging.getLogger(__name__)

engine = create_async_engine(config.DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    broker = RedisBroker.from_url(config.REDIS_URL)
    gateway = EventGateway(broker, inactive_threshold=config.INACTIVE_THRESHOLD)

    try:
        await create_schema(engine)
        services = build_services(async_session, Publisher(broker))
        if config.SEED_DATA:
            await populate_fake_data(services)

        if config.RUN_EVENTS:
            await gateway.start(build_workflow(services, config.STREAM_MAX_MSGS))

        app.state.services = services
        yield
    finally:
        # 処理中のハンドラは待たずに接続を閉じる
        await gateway.close()
        await broker.close()
        await engine.dispose()


app = FastAPI(title="eventflow", lifespan=lifespan)
app.include_router(api.router)
api.install_error_handlers(app)


def serve() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
