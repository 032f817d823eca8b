"""s3commander configuration.

Settings and credentials are plain pydantic models. They can be built
directly or loaded from the environment.

Environment Variables:
    S3COMMANDER_BUCKET: Bucket name (required by load_settings)
    S3COMMANDER_ENDPOINT: Service endpoint (default: "s3.amazonaws.com")
    S3COMMANDER_REGION: Region; selects "s3.{region}.amazonaws.com" when set
    S3COMMANDER_PREFIX: Folder the session starts in (default: bucket root)
    S3COMMANDER_PART_SIZE: Multipart part size in bytes (default: 10 MiB)
    S3COMMANDER_CONCURRENCY: Files transferred at once (default: 1)
    S3COMMANDER_ALLOW_DOWNLOAD: Attach download links to listings (default: 1)
    S3COMMANDER_CONFIRM_DELETES: Require confirmation before deletes (default: 0)
    S3COMMANDER_ACCESS_KEY_ID: Access key id
    S3COMMANDER_SECRET_ACCESS_KEY: Secret access key
    S3COMMANDER_SESSION_TOKEN: Session token for temporary credentials (optional)
"""

from __future__ import annotations

import os
from typing import Final

from pydantic import BaseModel, Field

from s3commander.storage.errors import SigningError

MIB: Final[int] = 1024 * 1024
DEFAULT_PART_SIZE: Final[int] = 10 * MIB
MIN_PART_SIZE: Final[int] = 5 * MIB
DEFAULT_ENDPOINT: Final[str] = "s3.amazonaws.com"
DEFAULT_LINK_EXPIRY_SECONDS: Final[int] = 900
DEFAULT_REQUEST_EXPIRY_SECONDS: Final[int] = 900

ENV_PREFIX: Final[str] = "S3COMMANDER_"


class Credentials(BaseModel):
    """Already-resolved credentials.

    Attributes:
        access_key_id: Access key id sent with every request.
        secret_access_key: Secret used to sign requests. Never transmitted.
        session_token: Token for temporary credentials (optional).
    """

    access_key_id: str
    secret_access_key: str = Field(repr=False)
    session_token: str | None = Field(default=None, repr=False)


class CommanderSettings(BaseModel):
    """Connection and transfer settings.

    Attributes:
        bucket: Bucket name.
        endpoint: Service endpoint host.
        region: Optional region; overrides endpoint with the regional host.
        scheme: URL scheme.
        prefix: Folder the session starts in ("" for bucket root).
        part_size: Multipart part size in bytes.
        concurrency: Number of files transferred at once.
        link_expiry_seconds: Lifetime of presigned download links.
        request_expiry_seconds: Lifetime of signatures on API requests.
        timeout_seconds: HTTP timeout.
        allow_download: Attach download links to listed files.
        confirm_deletes: Ask the caller to confirm before deleting.
    """

    bucket: str = Field(min_length=1)
    endpoint: str = DEFAULT_ENDPOINT
    region: str | None = None
    scheme: str = "https"
    prefix: str = ""
    part_size: int = Field(default=DEFAULT_PART_SIZE, ge=MIN_PART_SIZE)
    concurrency: int = Field(default=1, ge=1)
    link_expiry_seconds: int = Field(default=DEFAULT_LINK_EXPIRY_SECONDS, gt=0)
    request_expiry_seconds: int = Field(default=DEFAULT_REQUEST_EXPIRY_SECONDS, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    allow_download: bool = True
    confirm_deletes: bool = False

    @property
    def service_host(self) -> str:
        """Endpoint host, regional when a region is configured."""
        if self.region:
            return f"s3.{self.region}.amazonaws.com"
        return self.endpoint


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def load_settings(**overrides: object) -> CommanderSettings:
    """Build settings from S3COMMANDER_* variables, then apply overrides."""
    values: dict[str, object] = {
        "bucket": _get_env_str(f"{ENV_PREFIX}BUCKET"),
        "endpoint": _get_env_str(f"{ENV_PREFIX}ENDPOINT", DEFAULT_ENDPOINT),
        "region": _get_env_str(f"{ENV_PREFIX}REGION") or None,
        "prefix": _get_env_str(f"{ENV_PREFIX}PREFIX"),
        "allow_download": _get_env_bool(f"{ENV_PREFIX}ALLOW_DOWNLOAD", True),
        "confirm_deletes": _get_env_bool(f"{ENV_PREFIX}CONFIRM_DELETES", False),
    }
    part_size = _get_env_str(f"{ENV_PREFIX}PART_SIZE")
    if part_size:
        values["part_size"] = int(part_size)
    concurrency = _get_env_str(f"{ENV_PREFIX}CONCURRENCY")
    if concurrency:
        values["concurrency"] = int(concurrency)
    values.update({k: v for k, v in overrides.items() if v is not None})
    return CommanderSettings.model_validate(values)


def load_credentials() -> Credentials:
    """Read credentials from the environment.

    Raises:
        SigningError: If the access key id or secret is missing.
    """
    access_key_id = _get_env_str(f"{ENV_PREFIX}ACCESS_KEY_ID")
    secret_access_key = _get_env_str(f"{ENV_PREFIX}SECRET_ACCESS_KEY")
    if not access_key_id or not secret_access_key:
        raise SigningError(
            f"{ENV_PREFIX}ACCESS_KEY_ID and {ENV_PREFIX}SECRET_ACCESS_KEY must be set"
        )
    return Credentials(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=_get_env_str(f"{ENV_PREFIX}SESSION_TOKEN") or None,
    )
