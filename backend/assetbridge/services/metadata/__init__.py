"""Stage 1: token reference → asset id."""

from .resolver import extract_asset_id, lookup_asset_id, resolve_asset_id

__all__ = ["extract_asset_id", "lookup_asset_id", "resolve_asset_id"]
