from .connection import BrokerAPIError, Event, RedisBroker, StreamNotFoundError, Subscription
from .dispatcher import Dispatcher, attach
from .gateway import EventGateway, Route, StreamRoutes
from .models import ConsumerConfig, DeliverPolicy, PubAck, StorageType, StreamConfig
from .publisher import Publisher
from .registrar import ensure_route, ensure_stream

__all__ = [
    "BrokerAPIError",
    "ConsumerConfig",
    "DeliverPolicy",
    "Dispatcher",
    "Event",
    "EventGateway",
    "PubAck",
    "Publisher",
    "RedisBroker",
    "Route",
    "StorageType",
    "StreamConfig",
    "StreamNotFoundError",
    "StreamRoutes",
    "Subscription",
    "attach",
    "ensure_route",
    "ensure_stream",
]
