"""
Image derivatives — domain exceptions.

Every exception carries a preset status code and message so that callers
never need to specify these at the raise site.  The pipeline catches the two
base classes and turns them into a ProcessingOutcome:

  ProcessingSkipped  -> status 200 (informational, not an error)
  ProcessingFailed   -> status 500
"""
from __future__ import annotations


class DerivativeError(Exception):
    status_code: int = 500
    detail: str = "Image derivative processing error."

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ── Skips ────────────────────────────────────────────────────────────────────

class ProcessingSkipped(DerivativeError):
    status_code = 200
    detail = "skip"


class NoRecord(ProcessingSkipped):
    def __init__(self) -> None:
        super().__init__("no record")


class AuxiliaryArtifact(ProcessingSkipped):
    def __init__(self, ext: str) -> None:
        super().__init__(f"skip: {ext} artifact")


class NotSourceUpload(ProcessingSkipped):
    def __init__(self, root_prefix: str, folder: str) -> None:
        super().__init__(f"skip: not under {root_prefix}/{{type}}/{folder}/")


class UnsupportedExtension(ProcessingSkipped):
    def __init__(self, ext: str) -> None:
        super().__init__(f"skip: unsupported ext {ext}")


class AlreadyProcessed(ProcessingSkipped):
    def __init__(self) -> None:
        super().__init__("skip: already processed default object")


# ── Failures ─────────────────────────────────────────────────────────────────

class ProcessingFailed(DerivativeError):
    status_code = 500
    detail = "processing failed"


class KeyPatternMismatch(ProcessingFailed):
    def __init__(self) -> None:
        super().__init__("key pattern mismatch")


class MissingExtension(ProcessingFailed):
    def __init__(self) -> None:
        super().__init__("no extension")


class SourceFetchFailed(ProcessingFailed):
    def __init__(self, reason: str) -> None:
        super().__init__(f"getObject failed: {reason}")


class RenderFailed(ProcessingFailed):
    def __init__(self, reason: str) -> None:
        super().__init__(f"render failed: {reason}")


class WriteFailed(ProcessingFailed):
    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"putObject failed for {key}: {reason}")


class NotificationFailed(ProcessingFailed):
    def __init__(self, reason: str) -> None:
        super().__init__(f"notification failed: {reason}")


class MalformedEvent(ProcessingFailed):
    def __init__(self) -> None:
        super().__init__("malformed event record")


# ── S3 ───────────────────────────────────────────────────────────────────────

class ObjectMetadataUnavailable(DerivativeError):
    """Head-object read failed; the idempotency guard treats this as 'not processed'."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"headObject failed for {key}: {reason}")
