"""
Storage and queue ports used by the derivative pipeline.

Keep these small and SDK-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from typing import Protocol


class ObjectStore(Protocol):
    """Read/write access to the bucket holding sources and derivatives.

    Implementations raise SourceFetchFailed / WriteFailed for SDK errors and
    ObjectMetadataUnavailable when head metadata cannot be read.
    """

    async def head_metadata(self, key: str) -> dict[str, str]: ...

    async def get_object(self, key: str) -> bytes: ...

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None: ...

    def public_url(self, key: str) -> str: ...


class MessageQueue(Protocol):
    """Minimal interface to send one message body to a queue."""

    async def send_message(self, body: str) -> None: ...


__all__ = ["MessageQueue", "ObjectStore"]
