"""
AWS Lambda handler — Image Derivatives

Triggered by S3 ObjectCreated events on the {ROOT_PREFIX}/ prefix.

Flow:
  1. Reads the first record's object key (URL-decoded).
  2. Skips AVIF outputs, non-canonical folders and unsupported extensions.
  3. Skips canonical objects already marked processed=true.
  4. Downloads the source image once.
  5. Renders every variant of the image type's policy concurrently.
  6. Uploads each variant in its original format plus an AVIF sibling.
     The canonical ("default") variant overwrites its source and carries
     processed=true metadata so the follow-up event is skipped.
  7. Sends an IMAGE_DERIVATIVE_READY message per native-format variant
     when NOTIFICATION_QUEUE_URL is set.

Environment variables:
  S3_BUCKET_IMAGES        — Bucket holding sources and derivatives
  ROOT_PREFIX             — First key segment (default: fit-toring)
  IMAGE_POLICY            — Optional JSON policy table override
  NOTIFICATION_QUEUE_URL  — SQS queue for derivative-ready messages (optional)
  CDN_BASE_URL            — Base URL used in notifications (optional)
  AWS_REGION              — AWS region (set by Lambda runtime)
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack

from imaging.config import Settings, get_settings
from imaging.notifications import DerivativePublisher, SQSQueue
from imaging.pipeline import DerivativePipeline, ProcessingOutcome
from imaging.policy import VariantPolicy
from imaging.s3 import S3ObjectStore, s3_session

logger = logging.getLogger()

settings = get_settings()
logger.setLevel(settings.log_level)

policy = VariantPolicy.from_table(settings.image_policy, canonical=settings.canonical_folder)
session = s3_session(settings)


async def _run(event: dict, settings: Settings) -> ProcessingOutcome:
    async with AsyncExitStack() as stack:
        s3 = await stack.enter_async_context(session.client("s3"))
        store = S3ObjectStore(
            s3,
            bucket=settings.s3_bucket_images,
            region=settings.aws_region,
            cdn_base_url=settings.cdn_base_url,
        )

        queue = None
        if settings.notification_queue_url:
            sqs = await stack.enter_async_context(session.client("sqs"))
            queue = SQSQueue(sqs, settings.notification_queue_url)

        pipeline = DerivativePipeline(store, policy, settings, DerivativePublisher(queue))
        return await pipeline.process_event(event)


def handler(event: dict, context: object) -> dict:
    """Lambda entry point — derives resized images from one S3 upload event."""
    outcome = asyncio.run(_run(event, settings))
    return outcome.to_response()
