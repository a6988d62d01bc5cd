"""
Storage key parsing and derivative key construction.

Conventions:
    - Source uploads:   {root}/{imageType}/{canonical}/{baseName}{ext}
    - Derivatives:      {root}/{imageType}/{variant}/{baseName}{ext}
    - Auxiliary format: same path with the auxiliary extension substituted

The canonical derivative overwrites its own source key, so the canonical
output keeps the uploader's extension casing. Every other derivative uses the
lower-cased extension.
"""
from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

from imaging.exceptions import (
    AuxiliaryArtifact,
    KeyPatternMismatch,
    MissingExtension,
    NotSourceUpload,
    UnsupportedExtension,
)

_MIN_SEGMENTS = 4


@dataclass(frozen=True)
class ParsedKey:
    root_prefix: str
    image_type: str
    folder: str
    base_name: str
    extension: str  # original casing, including the leading dot

    @property
    def normalized_extension(self) -> str:
        return self.extension.lower()

    @property
    def filename(self) -> str:
        return f"{self.base_name}{self.extension}"


def decode_event_key(raw_key: str) -> str:
    """S3 event keys are URL-encoded with '+' for spaces."""
    return urllib.parse.unquote_plus(raw_key)


def classify_key(key: str, auxiliary_extension: str) -> None:
    """Pre-parse skip: our own auxiliary output must never be reprocessed."""
    if key.lower().endswith(auxiliary_extension.lower()):
        raise AuxiliaryArtifact(auxiliary_extension)


def parse_key(key: str, *, root_prefix: str, canonical_folder: str) -> ParsedKey:
    """Split a storage key into its convention parts.

    Raises:
        KeyPatternMismatch: fewer than four segments.
        NotSourceUpload: wrong root prefix or not in the canonical folder.
        MissingExtension: filename has no extension separator.
    """
    parts = key.split("/")
    if len(parts) < _MIN_SEGMENTS:
        raise KeyPatternMismatch()

    root, image_type, folder, *rest = parts
    if root != root_prefix or folder != canonical_folder:
        raise NotSourceUpload(root_prefix, canonical_folder)

    # slashes inside the logical filename are kept
    filename = "/".join(rest)
    ext_idx = filename.rfind(".")
    if ext_idx < 0:
        raise MissingExtension()

    return ParsedKey(
        root_prefix=root,
        image_type=image_type,
        folder=folder,
        base_name=filename[:ext_idx],
        extension=filename[ext_idx:],
    )


def ensure_allowed_extension(parsed: ParsedKey, allowed: frozenset[str]) -> None:
    if parsed.normalized_extension not in allowed:
        raise UnsupportedExtension(parsed.normalized_extension)


def derivative_key(
    parsed: ParsedKey,
    variant_name: str,
    *,
    canonical_folder: str,
    extension: str | None = None,
) -> str:
    """Build the destination key of one derivative.

    ``extension`` overrides the source extension (used for the auxiliary
    format).
    """
    if extension is None:
        extension = (
            parsed.extension
            if variant_name == canonical_folder
            else parsed.normalized_extension
        )
    return f"{parsed.root_prefix}/{parsed.image_type}/{variant_name}/{parsed.base_name}{extension}"


__all__ = [
    "ParsedKey",
    "classify_key",
    "decode_event_key",
    "derivative_key",
    "ensure_allowed_extension",
    "parse_key",
]
