"""Stage 3: glTF → GLB + MML descriptor, published to storage.

Each step below is a failure boundary. The first failure ends the
conversion with a single error; staged files and the auxiliary skeleton are
removed whatever happens. Artifacts already published by earlier steps stay
in place, since republishing overwrites them.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import httpx

from assetbridge.services.config import Settings, get_settings
from assetbridge.services.errors import AssetBridgeError, ConversionError
from assetbridge.services.http import client_scope, get_checked
from assetbridge.services.models import (
    CONTENT_TYPES,
    ConversionResult,
    ConvertedUrls,
    validate_asset_id,
)
from assetbridge.services.storage import StoragePublisher, get_publisher
from .converter import Converter, ConverterOptions, get_converter
from .staging import (
    StagingWorkspace,
    ensure_aux_resource,
    staging_workspace,
    working_directory,
)

logger = logging.getLogger(__name__)

CONVERSION_FAILED = "conversion failed"


def build_descriptor(glb_url: str) -> str:
    """MML document that renders the converted GLB as a character."""
    return f'<m-character src="{glb_url}"></m-character>'


class ConversionOrchestrator:
    """Stages, converts and publishes one asset per ``convert`` call."""

    def __init__(
        self,
        publisher: StoragePublisher,
        converter: Converter,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.publisher = publisher
        self.converter = converter
        self.settings = settings
        self._client = client

    async def convert(self, asset_id: str, source_url: str) -> ConversionResult:
        """Convert the glTF at *source_url* and publish GLB and MML.

        Returns both public URLs, or one error message.
        """
        logger.info("Converting GLTF to GLB for asset %s", asset_id)
        try:
            validate_asset_id(asset_id)
            async with client_scope(self._client) as http:
                urls = await self._run(http, asset_id, source_url)
        except AssetBridgeError as exc:
            logger.error("Conversion of asset %s failed: %s", asset_id, exc)
            return ConversionResult.fail(exc)
        except Exception:
            logger.error("Conversion of asset %s failed (unexpected)", asset_id, exc_info=True)
            return ConversionResult.fail(
                ConversionError(f"Error converting GLTF to GLB for asset {asset_id}")
            )

        logger.info("Conversion of asset %s complete: %s", asset_id, urls.mml_url)
        return ConversionResult.success(urls)

    async def _run(
        self,
        http: httpx.AsyncClient,
        asset_id: str,
        source_url: str,
    ) -> ConvertedUrls:
        # Step 1: re-download the source description
        resp = await get_checked(
            http, source_url, failure_message=f"Failed to fetch GLTF for asset {asset_id}"
        )

        async with staging_workspace(self.settings.staging_root, asset_id) as workspace:
            # Step 2: stage it
            source_path = workspace.stage(".gltf", resp.content)

            # Step 3: auxiliary skeleton
            await ensure_aux_resource(workspace, http, self.settings.aux_base_url)

            # Steps 4-5: run the converter
            glb_path = workspace.staged_path(".glb")
            await self._invoke_converter(workspace, source_path, glb_path)

            # Step 6: publish the GLB
            glb_url = await self.publisher.publish(
                f"{asset_id}.glb", glb_path.read_bytes(), CONTENT_TYPES[".glb"]
            )

            # Step 7: descriptor
            descriptor = build_descriptor(glb_url).encode("utf-8")
            workspace.stage(".mml", descriptor)
            mml_url = await self.publisher.publish(
                f"{asset_id}.mml", descriptor, CONTENT_TYPES[".mml"]
            )
        # Step 8 ran when the workspace closed

        return ConvertedUrls(glb_url=glb_url, mml_url=mml_url)

    async def _invoke_converter(
        self,
        workspace: StagingWorkspace,
        source_path: Path,
        glb_path: Path,
    ) -> None:
        options = ConverterOptions(merge=True, working_dir=workspace.path)
        try:
            if self.converter.resolves_relative_to_cwd:
                async with working_directory(workspace.path):
                    converted = await self.converter.convert(source_path, glb_path, options)
            else:
                converted = await self.converter.convert(source_path, glb_path, options)
        except Exception as exc:
            logger.error("Error during GLB conversion of %s", source_path.name, exc_info=True)
            raise ConversionError(CONVERSION_FAILED) from exc

        if not converted or not glb_path.is_file():
            logger.error("Converter produced no GLB for %s", source_path.name)
            raise ConversionError(CONVERSION_FAILED)


@lru_cache(maxsize=1)
def get_orchestrator() -> ConversionOrchestrator:
    """Return the process-wide orchestrator wired from settings."""
    return ConversionOrchestrator(
        publisher=get_publisher(),
        converter=get_converter(),
        settings=get_settings(),
    )


async def convert_to_mml(asset_id: str, source_url: str) -> ConversionResult:
    """Convert with the process-wide orchestrator."""
    return await get_orchestrator().convert(asset_id, source_url)
