"""
Derivative pipeline — one storage event in, one ProcessingOutcome out.

Flow per invocation:
  1. take the first record of the event batch (later records are ignored)
  2. skip auxiliary-format keys, parse the key, check the extension
  3. skip keys whose metadata already carries the processed marker
  4. fetch the source bytes once
  5. resolve the variant policy for the image type
  6. per variant, concurrently:
       render -> write native (marker iff canonical) -> notify
              -> encode AVIF -> write AVIF
  7. all variants succeed or the invocation fails; nothing is rolled back

CPU-bound Pillow work goes to the default thread-pool executor so variant
tasks overlap their S3 round-trips with encoding.
"""
from __future__ import annotations

import asyncio
import functools
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from imaging.config import Settings
from imaging.constants import OutcomeStatus
from imaging.exceptions import (
    MalformedEvent,
    NoRecord,
    ProcessingFailed,
    ProcessingSkipped,
)
from imaging.guard import ensure_not_processed, processed_marker
from imaging.keys import (
    ParsedKey,
    classify_key,
    decode_event_key,
    derivative_key,
    ensure_allowed_extension,
    parse_key,
)
from imaging.notifications import DerivativePublisher
from imaging.policy import VariantPolicy, VariantSpec
from imaging.ports import ObjectStore
from imaging.processor import encode_auxiliary, render_variant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingOutcome:
    status: OutcomeStatus
    message: str
    artifacts: tuple[str, ...] = field(default=())

    @classmethod
    def skipped(cls, message: str) -> ProcessingOutcome:
        return cls(OutcomeStatus.SKIPPED, message)

    @classmethod
    def failed(cls, message: str) -> ProcessingOutcome:
        return cls(OutcomeStatus.FAILED, message)

    @classmethod
    def completed(cls, message: str, artifacts: tuple[str, ...]) -> ProcessingOutcome:
        return cls(OutcomeStatus.COMPLETED, message, artifacts)

    @property
    def status_code(self) -> int:
        # skips are deliberate, not errors
        return 500 if self.status is OutcomeStatus.FAILED else 200

    def to_response(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "body": self.message}


def first_record_key(event: dict) -> str:
    """Return the decoded object key of the first record in the batch.

    SQS-wrapped S3 notifications are unwrapped. Only the first record is
    consulted; one object per invocation is the deployment assumption.
    """
    records = event.get("Records") or []
    if not records:
        raise NoRecord()
    if len(records) > 1:
        logger.warning("Batch of %d records; only the first is processed", len(records))

    try:
        record = records[0]
        if record.get("eventSource") == "aws:sqs":
            body = json.loads(record.get("body") or "{}")
            inner = body.get("Records") or []
            if not inner:
                raise NoRecord()
            record = inner[0]

        raw_key = record.get("s3", {}).get("object", {}).get("key", "")
    except (json.JSONDecodeError, TypeError, AttributeError, KeyError) as exc:
        raise MalformedEvent() from exc

    if not raw_key or not isinstance(raw_key, str):
        raise NoRecord()
    return decode_event_key(raw_key)


class DerivativePipeline:
    def __init__(
        self,
        store: ObjectStore,
        policy: VariantPolicy,
        settings: Settings,
        publisher: DerivativePublisher | None = None,
    ) -> None:
        self._store = store
        self._policy = policy
        self._settings = settings
        self._publisher = publisher or DerivativePublisher()

    async def process_event(self, event: dict) -> ProcessingOutcome:
        try:
            key = first_record_key(event)
        except ProcessingSkipped as exc:
            return self._finish(ProcessingOutcome.skipped(exc.detail))
        except ProcessingFailed as exc:
            return self._finish(ProcessingOutcome.failed(exc.detail))
        logger.info("Event key: %s", key)
        return await self.process_key(key)

    async def process_key(self, key: str) -> ProcessingOutcome:
        settings = self._settings
        try:
            classify_key(key, settings.auxiliary_extension)
            parsed = parse_key(
                key,
                root_prefix=settings.root_prefix,
                canonical_folder=settings.canonical_folder,
            )
            ensure_allowed_extension(parsed, settings.allowed_extensions_set)
            await ensure_not_processed(self._store, key)

            variants = self._policy.resolve(parsed.image_type)
            logger.info(
                "Policy for %s: %s",
                parsed.image_type,
                ", ".join(f"{v.name}<={v.max_width}px" for v in variants),
            )

            source = await self._store.get_object(key)
            artifacts = await self._fan_out(source, parsed, variants)
        except ProcessingSkipped as exc:
            return self._finish(ProcessingOutcome.skipped(exc.detail))
        except ProcessingFailed as exc:
            return self._finish(ProcessingOutcome.failed(exc.detail))
        except Exception as exc:
            logger.exception("Error processing image %s", key)
            return self._finish(ProcessingOutcome.failed(str(exc) or type(exc).__name__))

        return self._finish(ProcessingOutcome.completed(f"done: {parsed.filename}", artifacts))

    async def _fan_out(
        self,
        source: bytes,
        parsed: ParsedKey,
        variants: tuple[VariantSpec, ...],
    ) -> tuple[str, ...]:
        """Run every variant concurrently; any failure cancels the rest and re-raises."""
        tasks = [
            asyncio.create_task(self._run_variant(source, parsed, variant))
            for variant in variants
        ]
        try:
            written = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return tuple(key for pair in written for key in pair)

    async def _run_variant(
        self,
        source: bytes,
        parsed: ParsedKey,
        variant: VariantSpec,
    ) -> tuple[str, str]:
        loop = asyncio.get_running_loop()
        canonical = self._policy.is_canonical(variant)

        raster = await loop.run_in_executor(
            None,
            functools.partial(
                render_variant,
                source,
                variant.max_width,
                parsed.normalized_extension,
            ),
        )
        native_key = derivative_key(
            parsed, variant.name, canonical_folder=self._policy.canonical,
        )
        await self._store.put_object(
            native_key,
            raster.data,
            raster.content_type,
            processed_marker() if canonical else None,
        )
        if self._publisher.enabled:
            await self._publisher.publish_ready(
                parsed, variant.name, self._store.public_url(native_key),
            )

        auxiliary = await loop.run_in_executor(None, encode_auxiliary, raster)
        auxiliary_key = derivative_key(
            parsed,
            variant.name,
            canonical_folder=self._policy.canonical,
            extension=self._settings.auxiliary_extension,
        )
        await self._store.put_object(auxiliary_key, auxiliary.data, auxiliary.content_type)

        logger.info(
            "Variant %s: %dx%d -> %s, %s",
            variant.name, raster.width, raster.height, native_key, auxiliary_key,
        )
        return native_key, auxiliary_key

    @staticmethod
    def _finish(outcome: ProcessingOutcome) -> ProcessingOutcome:
        if outcome.status is OutcomeStatus.FAILED:
            logger.error("[ERR] %s", outcome.message)
        else:
            logger.info("[OK] %s", outcome.message)
        return outcome
