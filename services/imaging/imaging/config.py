from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from imaging.constants import DEFAULT_IMAGE_POLICY


def _env_files() -> list[str]:
    """Load .env from repository root (when running from services/imaging) then local .env."""
    base = Path(__file__).resolve().parent.parent.parent.parent  # repository root
    return [str(base / ".env"), ".env"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── AWS ───────────────────────────────────────────────────────────────────
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "ap-northeast-2"
    s3_bucket_images: str = "techcourse-project-2025"

    # ── Key convention ───────────────────────────────────────────────────────
    root_prefix: str = "fit-toring"
    canonical_folder: str = "default"
    auxiliary_extension: str = ".avif"
    allowed_extensions: str = ".jpg,.jpeg,.png,.gif,.webp"

    # image type -> [[variant name, max width], ...]; JSON when set from env
    image_policy: dict[str, list[tuple[str, int]]] = DEFAULT_IMAGE_POLICY

    # ── Notifications ────────────────────────────────────────────────────────
    notification_queue_url: str = ""  # empty disables derivative-ready messages
    cdn_base_url: str = ""

    log_level: str = "INFO"

    @property
    def allowed_extensions_set(self) -> frozenset[str]:
        exts = (x.strip().lower() for x in self.allowed_extensions.split(","))
        return frozenset(e if e.startswith(".") else f".{e}" for e in exts if e)


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""
    return Settings()
