"""
レコードストア — 文字列キーで JSON ドキュメントを保存する

各サービスは bucket (テーブル内の名前空間) を 1 つずつ持つ。
取引 (Transaction) は transaction_id と order_id の両方のキーで保存されるので、
values() は重複を取り除いて返す。

  records
  ┌─────────┬────────────┬──────────────┬────────────┐
  │ bucket  │ record_key │ data (JSON)  │ updated_at │
  └─────────┴────────────┴──────────────┴────────────┘
  PRIMARY KEY (bucket, record_key)
"""

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker

T = TypeVar("T", bound=BaseModel)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.execute(
            text("""
                CREATE TABLE IF NOT EXISTS records (
                    bucket      VARCHAR(64)  NOT NULL,
                    record_key  VARCHAR(128) NOT NULL,
                    data        TEXT         NOT NULL,
                    updated_at  TIMESTAMP WITH TIME ZONE NOT NULL,
                    PRIMARY KEY (bucket, record_key)
                )
            """)
        )


class RecordStore(Generic[T]):
    def __init__(self, session_factory: sessionmaker, bucket: str, model: type[T]):
        self.session_factory = session_factory
        self.bucket = bucket
        self.model = model

    async def get(self, record_id: str) -> T | None:
        """キーに対応するレコードを返す。存在しなければ None。"""
        if not record_id:
            return None
        async with self.session_factory() as session:
            result = await session.execute(
                text("SELECT data FROM records WHERE bucket = :bucket AND record_key = :key"),
                {"bucket": self.bucket, "key": record_id},
            )
            row = result.fetchone()
        if not row:
            return None
        return self.model.model_validate_json(row.data)

    async def put(self, record_id: str, record: T) -> None:
        async with self.session_factory() as session:
            await session.execute(
                text("""
                    INSERT INTO records (bucket, record_key, data, updated_at)
                    VALUES (:bucket, :key, :data, :now)
                    ON CONFLICT (bucket, record_key) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                """),
                {
                    "bucket": self.bucket,
                    "key": record_id,
                    "data": record.model_dump_json(),
                    "now": datetime.now(timezone.utc),
                },
            )
            await session.commit()

    async def values(self) -> list[T]:
        """バケット内の全レコード (同じ内容で複数キーに入っているものは 1 件)"""
        async with self.session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT data FROM records
                    WHERE bucket = :bucket
                    ORDER BY record_key ASC
                """),
                {"bucket": self.bucket},
            )
            rows = result.fetchall()
        unique = dict.fromkeys(row.data for row in rows)
        return [self.model.model_validate_json(data) for data in unique]

    async def is_empty(self) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                text("SELECT COUNT(*) AS n FROM records WHERE bucket = :bucket"),
                {"bucket": self.bucket},
            )
            return result.scalar_one() == 0
