"""Download an asset's glTF scene description and republish it durably."""

from __future__ import annotations

import logging

import httpx

from assetbridge.services.config import Settings, get_settings
from assetbridge.services.errors import AssetBridgeError, DataShapeError, TransportError
from assetbridge.services.http import client_scope, get_checked
from assetbridge.services.models import CONTENT_TYPES, Result, validate_asset_id
from assetbridge.services.storage import StoragePublisher, get_publisher

logger = logging.getLogger(__name__)


def description_url(asset_id: str, settings: Settings) -> str:
    """Canonical content-host URL for an asset's glTF."""
    return f"{settings.content_base_url}/assets/{asset_id}/gltf"


async def download_description(
    asset_id: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> bytes:
    """Download the glTF for *asset_id* and return its raw bytes.

    The body must be UTF-8 text; anything else is a DataShapeError.
    """
    settings = settings or get_settings()
    validate_asset_id(asset_id)

    async with client_scope(client) as http:
        resp = await get_checked(
            http,
            description_url(asset_id, settings),
            failure_message=f"Failed to fetch GLTF for asset {asset_id}",
        )

    body = resp.content
    try:
        body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DataShapeError(f"GLTF for asset {asset_id} is not UTF-8 text") from exc
    return body


async def fetch_description(
    asset_id: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
    publisher: StoragePublisher | None = None,
) -> Result[str]:
    """Download the glTF for *asset_id* and republish it as ``{asset_id}.gltf``.

    Returns the public URL of the republished copy. Fetching again
    overwrites the earlier copy.
    """
    logger.info("Downloading GLTF for asset %s", asset_id)
    try:
        body = await download_description(asset_id, client=client, settings=settings)
        publisher = publisher or get_publisher()
        url = await publisher.publish(f"{asset_id}.gltf", body, CONTENT_TYPES[".gltf"])
    except AssetBridgeError as exc:
        logger.error("GLTF fetch for asset %s failed: %s", asset_id, exc)
        return Result[str].fail(exc)
    except Exception:
        logger.error("GLTF fetch for asset %s failed (unexpected)", asset_id, exc_info=True)
        return Result[str].fail(TransportError(f"Error fetching GLTF for asset {asset_id}"))

    return Result[str].success(url)
