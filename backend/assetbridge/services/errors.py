"""Error taxonomy shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    """Kinds of failure a caller can see in a result."""

    TRANSPORT = "transport"
    DATA_SHAPE = "data_shape"
    CONVERSION = "conversion"


class AssetBridgeError(Exception):
    """Base class for errors raised inside the pipeline."""

    kind: ErrorKind = ErrorKind.TRANSPORT


class ConfigurationError(AssetBridgeError):
    """Missing or invalid process configuration. Fatal at startup."""


class TransportError(AssetBridgeError):
    """Network failure or non-success HTTP response."""

    kind = ErrorKind.TRANSPORT


class StorageError(TransportError):
    """Object-store upload failed."""


class DataShapeError(AssetBridgeError):
    """An expected field is missing or malformed."""

    kind = ErrorKind.DATA_SHAPE


class ConversionError(AssetBridgeError):
    """The external converter failed."""

    kind = ErrorKind.CONVERSION


@dataclass(frozen=True)
class CleanupWarning:
    """A staged resource that could not be deleted. Logged, never raised."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"could not remove {self.path}: {self.reason}"
