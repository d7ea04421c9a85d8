"""Stage 3: staging, conversion, publishing and cleanup."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import httpx
import pytest

from assetbridge.services.conversion import (
    CONVERSION_FAILED,
    ConversionOrchestrator,
    build_descriptor,
)
from assetbridge.services.errors import ErrorKind

from conftest import GLB_MAGIC, StubConverter, public_url, skeleton_url

SOURCE_URL = public_url("7f2a.gltf")
SCENE = b'{"scene":true}'


def _serve_source_and_skeleton(router, asset_id: str = "7f2a") -> None:
    router.add(public_url(f"{asset_id}.gltf"), httpx.Response(200, content=SCENE))
    router.add(skeleton_url(), httpx.Response(200, content=b"skeleton-bytes"))


def _leftovers(staging_root, asset_id: str = "7f2a") -> list:
    return [p for p in staging_root.rglob("*") if asset_id in p.name or p.name == "skeleton.glb"]


@pytest.fixture
def make_orchestrator(settings, publisher, client):
    def _make(converter: StubConverter) -> ConversionOrchestrator:
        return ConversionOrchestrator(publisher, converter, settings, client=client)

    return _make


def test_descriptor_template():
    assert build_descriptor("https://storage.test/avatars/7f2a.glb") == (
        '<m-character src="https://storage.test/avatars/7f2a.glb"></m-character>'
    )


@pytest.mark.asyncio
async def test_successful_conversion(router, make_orchestrator, fake_s3, staging_root):
    _serve_source_and_skeleton(router)
    converter = StubConverter()

    result = await make_orchestrator(converter).convert("7f2a", SOURCE_URL)

    assert result.ok
    assert result.value.glb_url == public_url("7f2a.glb")
    assert result.value.mml_url == public_url("7f2a.mml")

    assert fake_s3.objects["7f2a.glb"]["Body"] == GLB_MAGIC
    assert fake_s3.objects["7f2a.glb"]["ContentType"] == "model/gltf-binary"
    assert fake_s3.objects["7f2a.mml"]["Body"] == (
        f'<m-character src="{public_url("7f2a.glb")}"></m-character>'.encode()
    )

    input_path, output_path, options = converter.calls[0]
    assert input_path.name == "7f2a.gltf"
    assert output_path.name == "7f2a.glb"
    assert options.merge is True
    assert converter.saw_skeleton == [True]

    assert _leftovers(staging_root) == []
    assert list(staging_root.iterdir()) == []


@pytest.mark.asyncio
async def test_converter_raises(router, make_orchestrator, fake_s3, staging_root):
    _serve_source_and_skeleton(router)
    converter = StubConverter(raises=RuntimeError("bad mesh"))
    cwd_before = os.getcwd()

    result = await make_orchestrator(converter).convert("7f2a", SOURCE_URL)

    assert not result.ok
    assert result.value is None
    assert result.error.kind == ErrorKind.CONVERSION
    assert result.error.message == CONVERSION_FAILED
    assert fake_s3.calls == []
    assert _leftovers(staging_root) == []
    assert os.getcwd() == cwd_before


@pytest.mark.asyncio
async def test_converter_returns_false(router, make_orchestrator, fake_s3, staging_root):
    _serve_source_and_skeleton(router)

    result = await make_orchestrator(StubConverter(returns=False)).convert("7f2a", SOURCE_URL)

    assert result.error.message == CONVERSION_FAILED
    assert fake_s3.calls == []
    assert _leftovers(staging_root) == []


@pytest.mark.asyncio
async def test_source_download_failure(router, make_orchestrator, fake_s3, staging_root):
    router.add(SOURCE_URL, httpx.Response(500))
    converter = StubConverter()

    result = await make_orchestrator(converter).convert("7f2a", SOURCE_URL)

    assert result.error.kind == ErrorKind.TRANSPORT
    assert "7f2a" in result.error.message
    assert converter.calls == []
    assert list(staging_root.iterdir()) == []


@pytest.mark.asyncio
async def test_skeleton_download_failure(router, make_orchestrator, fake_s3, staging_root):
    router.add(SOURCE_URL, httpx.Response(200, content=SCENE))
    router.add(skeleton_url(), httpx.Response(503))
    converter = StubConverter()

    result = await make_orchestrator(converter).convert("7f2a", SOURCE_URL)

    assert result.error.kind == ErrorKind.TRANSPORT
    assert "skeleton.glb" in result.error.message
    assert converter.calls == []
    assert _leftovers(staging_root) == []


@pytest.mark.asyncio
async def test_descriptor_publish_failure(router, make_orchestrator, fake_s3, staging_root):
    _serve_source_and_skeleton(router)
    fake_s3.fail_keys.add("7f2a.mml")

    result = await make_orchestrator(StubConverter()).convert("7f2a", SOURCE_URL)

    assert result.error.kind == ErrorKind.TRANSPORT
    assert result.value is None
    # The GLB stays published; republishing overwrites it
    assert "7f2a.glb" in fake_s3.objects
    assert _leftovers(staging_root) == []


@pytest.mark.asyncio
async def test_invalid_asset_id(make_orchestrator, router, staging_root):
    result = await make_orchestrator(StubConverter()).convert("a/b", SOURCE_URL)

    assert result.error.kind == ErrorKind.DATA_SHAPE
    assert router.requests == []


@pytest.mark.asyncio
async def test_cwd_relative_converter_runs_inside_workspace(router, make_orchestrator, staging_root):
    _serve_source_and_skeleton(router)
    converter = StubConverter(relative_to_cwd=True)
    cwd_before = os.getcwd()

    result = await make_orchestrator(converter).convert("7f2a", SOURCE_URL)

    assert result.ok
    assert converter.saw_skeleton == [True]
    assert converter.cwd_during_call[0].parent == staging_root.resolve()
    assert os.getcwd() == cwd_before


@pytest.mark.asyncio
async def test_cwd_restored_when_cwd_relative_converter_raises(router, make_orchestrator, staging_root):
    _serve_source_and_skeleton(router)
    converter = StubConverter(relative_to_cwd=True, raises=OSError("segfault-ish"))
    cwd_before = os.getcwd()

    result = await make_orchestrator(converter).convert("7f2a", SOURCE_URL)

    assert result.error.message == CONVERSION_FAILED
    assert os.getcwd() == cwd_before
    assert _leftovers(staging_root) == []


@pytest.mark.asyncio
async def test_concurrent_conversions_are_isolated(router, make_orchestrator, fake_s3, staging_root):
    for asset_id in ("aaa1", "bbb2", "ccc3"):
        _serve_source_and_skeleton(router, asset_id)
    converter = StubConverter(relative_to_cwd=True)
    orchestrator = make_orchestrator(converter)
    cwd_before = os.getcwd()

    results = await asyncio.gather(*[
        orchestrator.convert(asset_id, public_url(f"{asset_id}.gltf"))
        for asset_id in ("aaa1", "bbb2", "ccc3")
    ])

    assert all(r.ok for r in results)
    assert converter.saw_skeleton == [True, True, True]
    assert len(set(converter.cwd_during_call)) == 3
    assert {"aaa1.mml", "bbb2.mml", "ccc3.mml"} <= set(fake_s3.objects)
    assert os.getcwd() == cwd_before
    assert list(staging_root.iterdir()) == []


@pytest.mark.asyncio
async def test_cwd_relative_converter_with_relative_staging_root(
    router, settings, publisher, client, tmp_path, monkeypatch
):
    monkeypatch.chdir(tmp_path)
    _serve_source_and_skeleton(router)
    converter = StubConverter(relative_to_cwd=True)
    relative = settings.model_copy(update={"staging_root": Path("stage")})
    orchestrator = ConversionOrchestrator(publisher, converter, relative, client=client)

    result = await orchestrator.convert("7f2a", SOURCE_URL)

    assert result.ok
    input_path, output_path, _ = converter.calls[0]
    assert input_path.is_absolute()
    assert output_path.is_absolute()
    assert os.getcwd() == str(tmp_path.resolve())
    assert list((tmp_path / "stage").iterdir()) == []
