import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from eventflow.bootstrap import build_services
from eventflow.broker import RedisBroker
from eventflow.store import create_schema


class RecordingPublisher:
    """発行されたイベントを記録するだけのパブリッシャー"""

    def __init__(self):
        self.published = []

    async def publish(self, subject, payload):
        self.published.append((subject, payload))

    def subjects(self):
        return [subject for subject, _ in self.published]


@pytest_asyncio.fixture
async def redis():
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def broker(redis):
    return RedisBroker(redis)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'eventflow.db'}")
    await create_schema(engine)
    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def services(session_factory, publisher):
    return build_services(session_factory, publisher)
