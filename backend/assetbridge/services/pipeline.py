"""Pipeline orchestrator: runs Stages 1-3 sequentially for one token."""

from __future__ import annotations

import logging

import httpx

from assetbridge.services.config import Settings, get_settings
from assetbridge.services.content import fetch_description
from assetbridge.services.conversion import ConversionOrchestrator, get_orchestrator
from assetbridge.services.metadata import resolve_asset_id
from assetbridge.services.models import AssetReference, PipelineResult, Result
from assetbridge.services.storage import StoragePublisher, get_publisher

logger = logging.getLogger(__name__)


async def run_pipeline(
    reference: AssetReference,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
    publisher: StoragePublisher | None = None,
    orchestrator: ConversionOrchestrator | None = None,
) -> Result[PipelineResult]:
    """Run Stage 1 → 2 → 3 for *reference*.

    Stops at the first stage that fails and returns its error. Artifacts
    published before the failure are left in place.
    """
    settings = settings or get_settings()
    publisher = publisher or get_publisher()
    orchestrator = orchestrator or get_orchestrator()

    # Stage 1: token → asset id
    logger.info("Stage 1: Resolving %s/%s", reference.contract_id, reference.token_id)
    resolved = await resolve_asset_id(
        reference.contract_id, reference.token_id, client=client, settings=settings
    )
    if not resolved.ok:
        return Result[PipelineResult](error=resolved.error)
    asset_id = resolved.value
    logger.info("Stage 1 complete: asset_id=%s", asset_id)

    # Stage 2: download + republish glTF
    logger.info("Stage 2: Fetching GLTF for asset %s", asset_id)
    fetched = await fetch_description(
        asset_id, client=client, settings=settings, publisher=publisher
    )
    if not fetched.ok:
        return Result[PipelineResult](error=fetched.error)
    gltf_url = fetched.value
    logger.info("Stage 2 complete: %s", gltf_url)

    # Stage 3: convert + publish GLB and MML
    logger.info("Stage 3: Converting asset %s", asset_id)
    converted = await orchestrator.convert(asset_id, gltf_url)
    if not converted.ok:
        return Result[PipelineResult](error=converted.error)
    logger.info("Stage 3 complete: glb=%s mml=%s", converted.value.glb_url, converted.value.mml_url)

    return Result[PipelineResult].success(
        PipelineResult(
            asset_id=asset_id,
            gltf_url=gltf_url,
            glb_url=converted.value.glb_url,
            mml_url=converted.value.mml_url,
        )
    )
