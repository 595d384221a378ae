"""
ブローカー — ストリーム/ルートの登録

起動時に毎回呼ばれるので、どちらも冪等でなければならない。
  ensure_stream  更新を試み、存在しなければ作成する
  ensure_route   コンシューマグループを作成または上書きし、購読ハンドルを返す
"""

import logging
from datetime import timedelta

from ..errors import ConfigurationError
from .connection import BrokerAPIError, RedisBroker, StreamNotFoundError, Subscription
from .models import ConsumerConfig, DeliverPolicy, StorageType, StreamConfig

logger = logging.getLogger(__name__)


async def ensure_stream(
    broker: RedisBroker,
    name: str,
    subjects: str,
    storage: StorageType = StorageType.FILE,
    max_msgs: int = -1,
) -> StreamConfig:
    """
    ストリームを作成または更新する。

    update が not-found 以外で失敗した場合は ConfigurationError として
    そのまま送出する (リトライはしない)。
    """
    config = StreamConfig(name=name, subjects=subjects, storage=storage, max_msgs=max_msgs)
    try:
        info = await broker.update_stream(config)
        logger.info("Updated existing %s stream.", name)
    except StreamNotFoundError:
        try:
            info = await broker.add_stream(config)
        except BrokerAPIError as e:
            raise ConfigurationError(f"Unable to create stream {name}: {e}") from e
        logger.info("Created a new %s stream.", name)
    except BrokerAPIError as e:
        raise ConfigurationError(f"Unable to update stream {name}: {e}") from e
    return info


async def ensure_route(
    broker: RedisBroker,
    stream: str,
    filter_subject: str,
    group: str,
    deliver_policy: DeliverPolicy = DeliverPolicy.NEW,
    inactive_threshold: timedelta = timedelta(days=14),
) -> Subscription:
    """
    コンシューマグループを登録して購読ハンドルを返す。

    同名のグループが別の設定で存在する場合は、マージせずに上書きする。
    """
    config = ConsumerConfig(
        durable_name=group,
        filter_subject=filter_subject,
        deliver_policy=deliver_policy,
        inactive_threshold=inactive_threshold,
    )
    try:
        await broker.add_or_update_consumer(stream, config)
        subscription = await broker.subscribe(stream, group)
    except BrokerAPIError as e:
        raise ConfigurationError(f"Unable to set up consumer {stream}/{group}: {e}") from e

    logger.info("Route ready: %s -> %s (%s)", filter_subject, group, stream)
    return subscription
