"""Token metadata lookup: maps a collectible reference to its asset id.

The metadata provider (Alchemy NFT API) returns a record whose
``metadata.external_url`` points at the asset's page on the content host.
The asset id is the last non-empty path segment of that URL.
"""

from __future__ import annotations

import logging

import httpx

from assetbridge.services.config import Settings, get_settings
from assetbridge.services.errors import AssetBridgeError, DataShapeError
from assetbridge.services.http import client_scope, get_checked
from assetbridge.services.models import Result, validate_asset_id

logger = logging.getLogger(__name__)


def extract_asset_id(external_url: str) -> str | None:
    """Return the trailing path segment of *external_url*, or None if empty."""
    parts = [part.strip() for part in external_url.strip().split("/")]
    parts = [part for part in parts if part]
    return parts[-1] if parts else None


async def _fetch_metadata(
    client: httpx.AsyncClient,
    settings: Settings,
    contract_id: str,
    token_id: str,
) -> dict:
    url = f"{settings.metadata_base_url}/{settings.metadata_api_key}/getNFTMetadata"
    resp = await get_checked(
        client,
        url,
        params={
            "contractAddress": contract_id,
            "tokenId": token_id,
            "refreshCache": "false",
        },
        headers={"accept": "application/json"},
        failure_message="Failed to fetch nft metadata",
    )
    try:
        data = resp.json()
    except ValueError as exc:
        raise DataShapeError("NFT metadata response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise DataShapeError("NFT metadata response is not a JSON object")
    return data


async def lookup_asset_id(
    contract_id: str,
    token_id: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> str:
    """Resolve a token to its asset id, raising on any failure."""
    settings = settings or get_settings()

    async with client_scope(client) as http:
        data = await _fetch_metadata(http, settings, contract_id, token_id)

    metadata = data.get("metadata")
    external_url = metadata.get("external_url") if isinstance(metadata, dict) else None
    if not external_url or not isinstance(external_url, str):
        raise DataShapeError("No external_url found in nft metadata")

    asset_id = extract_asset_id(external_url)
    if not asset_id:
        raise DataShapeError(f"No asset id found in external_url {external_url!r}")
    return validate_asset_id(asset_id)


async def resolve_asset_id(
    contract_id: str,
    token_id: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> Result[str]:
    """Resolve ``contract_id``/``token_id`` to an asset id.

    Never raises for transport or data problems; they come back as the
    result's error.
    """
    try:
        asset_id = await lookup_asset_id(
            contract_id, token_id, client=client, settings=settings
        )
    except AssetBridgeError as exc:
        logger.error("Asset id lookup failed for %s/%s: %s", contract_id, token_id, exc)
        return Result[str].fail(exc)
    except Exception:
        logger.error(
            "Asset id lookup failed for %s/%s (unexpected)", contract_id, token_id, exc_info=True
        )
        return Result[str].fail(
            DataShapeError(f"Error resolving asset id for {contract_id}/{token_id}")
        )

    logger.info("Resolved %s/%s to asset %s", contract_id, token_id, asset_id)
    return Result[str].success(asset_id)
