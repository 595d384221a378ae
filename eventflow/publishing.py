from typing import Any, Protocol


class EventPublisher(Protocol):
    """サービスがイベントを発行するために必要な最小限のインターフェース"""

    async def publish(self, subject: str, payload: Any) -> Any: ...
