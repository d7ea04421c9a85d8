"""Catalog endpoints: list known avatars and pick one at random."""

from fastapi import APIRouter, Depends, HTTPException

from assetbridge.services.catalog import get_catalog, random_reference
from assetbridge.services.errors import DataShapeError
from assetbridge.services.models import AssetReference, CatalogEntry

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/catalog", response_model=list[CatalogEntry])
async def list_catalog(entries: list[CatalogEntry] = Depends(get_catalog)):
    """All catalog entries, including ones without a known asset id."""
    return entries


@router.get("/catalog/random", response_model=AssetReference)
async def random_catalog_entry(entries: list[CatalogEntry] = Depends(get_catalog)):
    """A random catalog avatar that has a known asset id."""
    try:
        return random_reference(entries)
    except DataShapeError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
