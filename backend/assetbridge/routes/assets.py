"""Asset endpoints: resolve tokens, republish glTF, convert to GLB + MML.

Every endpoint answers 200 with a value-or-error body; the error is part of
the result, not an HTTP failure.
"""

from collections.abc import AsyncIterator

import httpx
from fastapi import APIRouter, Depends

from assetbridge.services.config import Settings, get_settings
from assetbridge.services.content import fetch_description
from assetbridge.services.conversion import ConversionOrchestrator, get_orchestrator
from assetbridge.services.http import client_scope
from assetbridge.services.metadata import resolve_asset_id
from assetbridge.services.models import (
    AssetReference,
    ConversionResult,
    ConvertRequest,
    PipelineResult,
    Result,
)
from assetbridge.services.pipeline import run_pipeline
from assetbridge.services.storage import StoragePublisher, get_publisher

router = APIRouter(prefix="/api", tags=["assets"])


async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with client_scope() as client:
        yield client


@router.get("/tokens/{contract_id}/{token_id}", response_model=Result[str])
async def resolve_token(
    contract_id: str,
    token_id: str,
    client: httpx.AsyncClient = Depends(http_client),
    settings: Settings = Depends(get_settings),
):
    """Resolve a contract/token pair to its asset id."""
    return await resolve_asset_id(contract_id, token_id, client=client, settings=settings)


@router.post("/assets/{asset_id}/gltf", response_model=Result[str])
async def fetch_gltf(
    asset_id: str,
    client: httpx.AsyncClient = Depends(http_client),
    settings: Settings = Depends(get_settings),
    publisher: StoragePublisher = Depends(get_publisher),
):
    """Download the asset's glTF and republish it; returns the public URL."""
    return await fetch_description(
        asset_id, client=client, settings=settings, publisher=publisher
    )


@router.post("/assets/{asset_id}/convert", response_model=ConversionResult)
async def convert_asset(
    asset_id: str,
    body: ConvertRequest,
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
):
    """Convert a republished glTF to GLB and publish its MML descriptor."""
    return await orchestrator.convert(asset_id, body.source_url)


@router.post("/pipeline", response_model=Result[PipelineResult])
async def run_full_pipeline(
    reference: AssetReference,
    client: httpx.AsyncClient = Depends(http_client),
    settings: Settings = Depends(get_settings),
    publisher: StoragePublisher = Depends(get_publisher),
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
):
    """Resolve, fetch and convert in one call."""
    return await run_pipeline(
        reference,
        client=client,
        settings=settings,
        publisher=publisher,
        orchestrator=orchestrator,
    )
