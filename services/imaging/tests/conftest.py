import io

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from imaging.config import Settings
from imaging.exceptions import (
    NotificationFailed,
    ObjectMetadataUnavailable,
    SourceFetchFailed,
    WriteFailed,
)
from imaging.notifications import DerivativePublisher
from imaging.pipeline import DerivativePipeline
from imaging.policy import VariantPolicy


TEST_POLICY = {
    "typeA": [("default", 500), ("thumbnail", 300)],
    "_default": [("default", 1600)],
}


class FakeObjectStore:
    """In-memory ObjectStore; records every put in order."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.metadata: dict[str, dict[str, str]] = {}
        self.content_types: dict[str, str] = {}
        self.puts: list[str] = []
        self.head_calls: list[str] = []
        self.fail_puts: set[str] = set()

    def add(self, key: str, body: bytes, metadata: dict[str, str] | None = None) -> None:
        self.objects[key] = body
        self.metadata[key] = dict(metadata or {})

    async def head_metadata(self, key: str) -> dict[str, str]:
        self.head_calls.append(key)
        if key not in self.objects:
            raise ObjectMetadataUnavailable(key, "Not Found")
        return dict(self.metadata.get(key, {}))

    async def get_object(self, key: str) -> bytes:
        if key not in self.objects:
            raise SourceFetchFailed("The specified key does not exist.")
        return self.objects[key]

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        if key in self.fail_puts:
            raise WriteFailed(key, "Access Denied")
        self.objects[key] = body
        self.metadata[key] = dict(metadata or {})
        self.content_types[key] = content_type
        self.puts.append(key)

    def public_url(self, key: str) -> str:
        return f"https://cdn.test/{key}"


class FakeQueue:
    def __init__(self) -> None:
        self.messages: list[str] = []
        self.fail = False

    async def send_message(self, body: str) -> None:
        if self.fail:
            raise NotificationFailed("queue unavailable")
        self.messages.append(body)


def _client_error(code: str, message: str, op: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, op)


class _Body:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def __aenter__(self) -> "_Body":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def read(self) -> bytes:
        return self._data


class FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, dict]] = {}
        self.put_calls: list[dict] = []
        self.deny_puts = False

    async def head_object(self, Bucket: str, Key: str) -> dict:
        if Key not in self.objects:
            raise _client_error("404", "Not Found", "HeadObject")
        return {"ContentLength": len(self.objects[Key][0]), "Metadata": self.objects[Key][1]}

    async def get_object(self, Bucket: str, Key: str) -> dict:
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "The specified key does not exist.", "GetObject")
        return {"Body": _Body(self.objects[Key][0])}

    async def put_object(self, **params) -> dict:
        if self.deny_puts:
            raise _client_error("AccessDenied", "Access Denied", "PutObject")
        self.put_calls.append(params)
        self.objects[params["Key"]] = (params["Body"], params.get("Metadata", {}))
        return {}


def make_image(
    width: int,
    height: int,
    *,
    fmt: str = "JPEG",
    mode: str = "RGB",
    color: tuple = (200, 30, 30),
    **save_kwargs,
) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


def decode_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size


def s3_event(*keys: str) -> dict:
    return {"Records": [{"s3": {"object": {"key": key}}} for key in keys]}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        root_prefix="root",
        s3_bucket_images="test-bucket",
        aws_region="ap-northeast-2",
        image_policy=TEST_POLICY,
        notification_queue_url="",
    )


@pytest.fixture
def policy(settings: Settings) -> VariantPolicy:
    return VariantPolicy.from_table(settings.image_policy, canonical=settings.canonical_folder)


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def pipeline(store, policy, settings, queue) -> DerivativePipeline:
    return DerivativePipeline(store, policy, settings, DerivativePublisher(queue))
