"""
Analytics Service — すべてのイベントを取り込む

order.> / payment.> / notification.> のすべてを受け取り、
サブジェクトごとの件数をメモリ上に集計する。イベントは発行しない。
"""

import logging
from collections import Counter
from typing import Protocol

from .models import TrackEventRequest

logger = logging.getLogger(__name__)


class AnalyticsService(Protocol):
    async def track_event(self, req: TrackEventRequest) -> None: ...

    def summary(self) -> dict[str, int]: ...


class AnalyticsServiceHandler:
    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()

    async def track_event(self, req: TrackEventRequest) -> None:
        logger.info("I spy with my event-based eye: %s", req.event)
        self.counts[req.event] += 1

    def summary(self) -> dict[str, int]:
        return dict(sorted(self.counts.items()))
