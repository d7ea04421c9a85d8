"""Curated catalog of known avatars, loaded from a JSON file."""

from __future__ import annotations

import json
import logging
import random
from functools import lru_cache
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from assetbridge.services.config import get_settings
from assetbridge.services.errors import ConfigurationError, DataShapeError
from assetbridge.services.models import AssetReference, CatalogEntry

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[CatalogEntry])


def load_catalog(path: Path | None) -> list[CatalogEntry]:
    """Load catalog entries from *path*; no path means an empty catalog.

    Raises DataShapeError if the file is not a JSON list of entries.
    """
    if path is None:
        return []
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        entries = _ENTRIES.validate_python(data)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise DataShapeError(f"Invalid asset catalog at {path}: {exc}") from exc
    logger.info("Loaded %d catalog entries from %s", len(entries), path)
    return entries


def random_reference(
    entries: list[CatalogEntry],
    rng: random.Random | None = None,
) -> AssetReference:
    """Pick a random entry that has a known asset id."""
    valid = [entry for entry in entries if entry.asset_id is not None]
    if not valid:
        raise DataShapeError("Asset catalog has no entries with an asset id")
    entry = (rng or random).choice(valid)
    return AssetReference(contract_id=entry.contract_address, token_id=entry.token_id)


@lru_cache(maxsize=1)
def get_catalog() -> list[CatalogEntry]:
    """Return the process-wide catalog from ``ASSET_CATALOG_PATH``.

    Loaded during startup; an unreadable catalog is a ConfigurationError.
    """
    try:
        return load_catalog(get_settings().asset_catalog_path)
    except DataShapeError as exc:
        raise ConfigurationError(str(exc)) from exc
