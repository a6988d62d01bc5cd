"""
Image derivatives — static constants and enum types.
"""
import enum


class ImageType(str, enum.Enum):
    MENTORING_PROFILE = "mentoring-profile"
    CERTIFICATE = "certificate-image"


class VariantName(str, enum.Enum):
    """Output folder labels."""
    DEFAULT = "default"
    THUMBNAIL = "thumbnail"


class OutcomeStatus(str, enum.Enum):
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"
    COMPLETED = "COMPLETED"


# Policy table key used when the image type has no entry of its own
DEFAULT_POLICY_KEY = "_default"

# Built-in policy: image type -> [(variant name, max width)]
DEFAULT_IMAGE_POLICY: dict[str, list[tuple[str, int]]] = {
    ImageType.MENTORING_PROFILE.value: [
        (VariantName.DEFAULT.value, 500),
        (VariantName.THUMBNAIL.value, 300),
    ],
    ImageType.CERTIFICATE.value: [
        (VariantName.DEFAULT.value, 500),
        (VariantName.THUMBNAIL.value, 300),
    ],
    DEFAULT_POLICY_KEY: [
        (VariantName.DEFAULT.value, 1600),
        (VariantName.THUMBNAIL.value, 360),
    ],
}

CONTENT_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".avif": "image/avif",
}

FALLBACK_CONTENT_TYPE = "application/octet-stream"

# Object metadata written on the canonical artifact only
PROCESSED_METADATA_KEY = "processed"
PROCESSED_METADATA_VALUE = "true"

# Encoder parameters
JPEG_QUALITY = 85
WEBP_QUALITY = 70
WEBP_METHOD = 4
PNG_COMPRESS_LEVEL = 9
AVIF_QUALITY = 55
AVIF_SPEED = 5  # libavif speed 5 == encoder effort 4

CACHE_CONTROL = "max-age=31536000"

DERIVATIVE_READY_EVENT = "IMAGE_DERIVATIVE_READY"


def content_type_of(ext: str) -> str:
    return CONTENT_TYPES.get(ext.lower(), FALLBACK_CONTENT_TYPE)
