"""
Recursion guard for the canonical derivative.

The canonical derivative is written back over its own source key, which fires
another storage event for the same key. That write carries a ``processed``
metadata marker, and this check turns the follow-up event into a skip.

This is check-then-act, not compare-and-set: two near-simultaneous events on
the same key can both pass the check. Callers needing mutual exclusion must
keep a separate ledger keyed by source key.
"""
from __future__ import annotations

import logging

from imaging.constants import PROCESSED_METADATA_KEY, PROCESSED_METADATA_VALUE
from imaging.exceptions import AlreadyProcessed, ObjectMetadataUnavailable
from imaging.ports import ObjectStore

logger = logging.getLogger(__name__)


def processed_marker() -> dict[str, str]:
    return {PROCESSED_METADATA_KEY: PROCESSED_METADATA_VALUE}


async def is_already_processed(store: ObjectStore, key: str) -> bool:
    try:
        metadata = await store.head_metadata(key)
    except ObjectMetadataUnavailable as exc:
        # A fresh upload may not be visible yet; a missing object fails at fetch
        logger.info("%s (will continue)", exc.detail)
        return False
    return metadata.get(PROCESSED_METADATA_KEY) == PROCESSED_METADATA_VALUE


async def ensure_not_processed(store: ObjectStore, key: str) -> None:
    if await is_already_processed(store, key):
        raise AlreadyProcessed()
