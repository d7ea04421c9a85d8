"""Constants and process-scope settings for the asset bridge."""

from __future__ import annotations

import base64
import binascii
import json
import shlex
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigurationError

DEFAULT_METADATA_BASE_URL = "https://polygon-mainnet.g.alchemy.com/v2"
DEFAULT_CONTENT_BASE_URL = "https://public-assets.sandbox.game"
DEFAULT_AUX_BASE_URL = "http://localhost:3000"
DEFAULT_STORAGE_PUBLIC_HOST = "storage.googleapis.com"
DEFAULT_STORAGE_ENDPOINT_URL = "https://storage.googleapis.com"
DEFAULT_CONVERTER_COMMAND = "node converter/main.js"

# Long-lived cache directive for published artifacts (one year)
CACHE_CONTROL = "public, max-age=31536000"

# Auxiliary converter input, resolved relative to the staging workspace
AUX_RESOURCE_RELATIVE_PATH = Path("data") / "skeleton.glb"

# HTTP timeouts (seconds)
HTTP_TIMEOUT_SECONDS: float = 60.0
HTTP_CONNECT_TIMEOUT_SECONDS: float = 10.0


class StorageCredentials(BaseModel):
    """Decoded object-store credential document (S3-compatible HMAC keys)."""

    access_key_id: str = Field(min_length=1)
    secret_access_key: str = Field(min_length=1)
    endpoint_url: str = DEFAULT_STORAGE_ENDPOINT_URL
    region: str = "auto"
    project_id: str | None = None


def decode_credentials(encoded: str) -> StorageCredentials:
    """Decode a base64 JSON credential document.

    Raises ConfigurationError when the value is not base64, not JSON, or is
    missing one of the required key fields.
    """
    try:
        raw = base64.b64decode(encoded, validate=True).decode("utf-8")
        data = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationError(
            f"Failed to parse storage credentials: {exc}"
        ) from exc

    if not isinstance(data, dict):
        raise ConfigurationError("Storage credentials must be a JSON object")

    try:
        return StorageCredentials.model_validate(data)
    except ValidationError as exc:
        missing = ", ".join(str(err["loc"][0]) for err in exc.errors())
        raise ConfigurationError(
            f"Storage credentials missing or invalid fields: {missing}"
        ) from exc


class Settings(BaseSettings):
    """Everything the service needs from its environment."""

    model_config = SettingsConfigDict(
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    metadata_api_key: str = Field(min_length=1, validation_alias="ALCHEMY_API_KEY")
    storage_credentials: Annotated[StorageCredentials, NoDecode] = Field(
        validation_alias="GOOGLE_CLOUD_CREDENTIALS"
    )
    bucket_name: str = Field(min_length=1, validation_alias="GCS_BUCKET_NAME")

    metadata_base_url: str = Field(
        default=DEFAULT_METADATA_BASE_URL, validation_alias="METADATA_BASE_URL"
    )
    content_base_url: str = Field(
        default=DEFAULT_CONTENT_BASE_URL, validation_alias="CONTENT_BASE_URL"
    )
    aux_base_url: str = Field(default=DEFAULT_AUX_BASE_URL, validation_alias="HOST_DOMAIN")
    storage_public_host: str = Field(
        default=DEFAULT_STORAGE_PUBLIC_HOST, validation_alias="STORAGE_PUBLIC_HOST"
    )
    converter_command: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: shlex.split(DEFAULT_CONVERTER_COMMAND),
        min_length=1,
        validation_alias="CONVERTER_COMMAND",
    )
    staging_root: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        validation_alias="STAGING_ROOT",
    )
    asset_catalog_path: Path | None = Field(default=None, validation_alias="ASSET_CATALOG_PATH")

    @field_validator("storage_credentials", mode="before")
    @classmethod
    def _decode_credentials(cls, value):
        if isinstance(value, str):
            return decode_credentials(value.strip())
        return value

    @field_validator("converter_command", mode="before")
    @classmethod
    def _split_command(cls, value):
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("metadata_base_url", "content_base_url", "aux_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("staging_root")
    @classmethod
    def _absolute_staging_root(cls, value: Path) -> Path:
        # Staged paths must stay valid after a chdir into a workspace
        return value.expanduser().resolve()


def _variable_name(loc: tuple) -> str:
    name = str(loc[0]) if loc else "settings"
    field = Settings.model_fields.get(name)
    if field is not None and isinstance(field.validation_alias, str):
        return field.validation_alias
    return name


def load_settings() -> Settings:
    """Build ``Settings`` from environment variables.

    Raises ConfigurationError if a required variable is missing or invalid,
    so that a misconfigured process fails at startup instead of per request.
    """
    try:
        return Settings()
    except ValidationError as exc:
        problems = "; ".join(
            f"{_variable_name(err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return load_settings()
