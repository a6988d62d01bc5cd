"""
Derivative-ready notifications.

One message per native-format derivative; auxiliary-format artifacts are not
announced. Without a configured queue the publisher is a silent no-op.
"""
from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from imaging.events import ImageDerivativeReady
from imaging.exceptions import NotificationFailed
from imaging.keys import ParsedKey
from imaging.ports import MessageQueue

logger = logging.getLogger(__name__)


class SQSQueue:
    """MessageQueue backed by an open aioboto3 SQS client."""

    def __init__(self, client: Any, queue_url: str) -> None:
        self._client = client
        self.queue_url = queue_url

    async def send_message(self, body: str) -> None:
        try:
            await self._client.send_message(QueueUrl=self.queue_url, MessageBody=body)
        except (BotoCoreError, ClientError) as exc:
            raise NotificationFailed(str(exc)) from exc


def build_derivative_ready_event(
    parsed: ParsedKey,
    variant_name: str,
    url: str,
) -> ImageDerivativeReady:
    return ImageDerivativeReady(
        image_type=parsed.image_type,
        base_name=parsed.base_name,
        image_variant=variant_name,
        url=url,
    )


class DerivativePublisher:
    def __init__(self, queue: MessageQueue | None = None) -> None:
        self._queue = queue

    @property
    def enabled(self) -> bool:
        return self._queue is not None

    async def publish_ready(self, parsed: ParsedKey, variant_name: str, url: str) -> None:
        if self._queue is None:
            return
        event = build_derivative_ready_event(parsed, variant_name, url)
        await self._queue.send_message(event.model_dump_json(by_alias=True))
        logger.info("Published %s for %s (%s)", event.event, parsed.base_name, variant_name)
