"""Pydantic models for inter-stage data flow and caller-facing results."""

from __future__ import annotations

import re
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, model_validator

from .errors import AssetBridgeError, DataShapeError, ErrorKind

__all__ = [
    "AssetReference", "validate_asset_id",
    "ErrorDetail", "Result",
    "ConvertedUrls", "ConversionResult",
    "ConvertRequest", "PipelineResult",
    "CatalogEntry",
]

T = TypeVar("T")

_ASSET_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")

# Content types for each staged suffix
CONTENT_TYPES: dict[str, str] = {
    ".gltf": "model/gltf+json",
    ".glb": "model/gltf-binary",
    ".mml": "text/html",
}


def validate_asset_id(asset_id: str) -> str:
    """Return *asset_id* if it is usable as a file name and object key.

    Raises DataShapeError otherwise.
    """
    if not _ASSET_ID_RE.match(asset_id) or asset_id in {".", ".."}:
        raise DataShapeError(f"Invalid asset id: {asset_id!r}")
    return asset_id


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class AssetReference(BaseModel):
    """A collectible identified by contract address and token id."""

    contract_id: str = Field(min_length=1)
    token_id: str = Field(min_length=1)

    model_config = {"frozen": True}


class ConvertRequest(BaseModel):
    """Body of a conversion request."""

    source_url: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    kind: ErrorKind
    message: str


class Result(BaseModel, Generic[T]):
    """Either a value or an error, never both and never neither."""

    value: T | None = None
    error: ErrorDetail | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "Result[T]":
        if (self.value is None) == (self.error is None):
            raise ValueError("Result must carry exactly one of value or error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, exc: AssetBridgeError) -> "Result[T]":
        return cls(error=ErrorDetail(kind=exc.kind, message=str(exc)))


class ConvertedUrls(BaseModel):
    glb_url: str
    mml_url: str


ConversionResult = Result[ConvertedUrls]


class PipelineResult(BaseModel):
    """Every public URL produced for one asset reference."""

    asset_id: str
    gltf_url: str
    glb_url: str
    mml_url: str


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class CatalogEntry(BaseModel):
    """A known avatar from the curated catalog file."""

    name: str = ""
    contract_address: str = Field(alias="contractAddress")
    token_id: str = Field(alias="tokenId")
    asset_id: str | None = Field(default=None, alias="assetId")

    model_config = {"populate_by_name": True, "coerce_numbers_to_str": True}
