"""Shared fixtures: settings, a fake object store, routed HTTP, a stub converter."""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from assetbridge.services.config import Settings, StorageCredentials
from assetbridge.services.conversion import ConverterOptions
from assetbridge.services.storage import StoragePublisher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

METADATA_BASE = "https://meta.test/v2"
CONTENT_BASE = "https://content.test"
AUX_BASE = "https://host.test"
PUBLIC_HOST = "storage.test"
BUCKET = "avatars"
API_KEY = "test-key"
GLB_MAGIC = b"glTF"


# ---------------------------------------------------------------------------
# Object store
# ---------------------------------------------------------------------------

class FakeS3:
    """In-memory stand-in for a boto3 S3 client's ``put_object``."""

    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}
        self.calls: list[str] = []
        self.fail_keys: set[str] = set()

    def put_object(self, *, Bucket, Key, Body, ContentType, CacheControl):
        self.calls.append(Key)
        if Key in self.fail_keys:
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
                "PutObject",
            )
        self.objects[Key] = {
            "Bucket": Bucket,
            "Body": Body,
            "ContentType": ContentType,
            "CacheControl": CacheControl,
        }
        return {}


def public_url(key: str) -> str:
    return f"https://{PUBLIC_HOST}/{BUCKET}/{key}"


# ---------------------------------------------------------------------------
# HTTP routing
# ---------------------------------------------------------------------------

Route = httpx.Response | Callable[[httpx.Request], httpx.Response]


def _route_key(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.host}{url.path}"


class Router:
    """Routes requests by URL (query string ignored) and records them."""

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = _route_key(request.url)
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404)
        if callable(route):
            return route(request)
        return route

    def requested(self, url: str) -> int:
        return sum(1 for r in self.requests if _route_key(r.url) == url)


def metadata_url() -> str:
    return f"{METADATA_BASE}/{API_KEY}/getNFTMetadata"


def metadata_response(external_url: str | None) -> httpx.Response:
    metadata = {} if external_url is None else {"external_url": external_url}
    return httpx.Response(200, json={"metadata": metadata})


def gltf_url(asset_id: str) -> str:
    return f"{CONTENT_BASE}/assets/{asset_id}/gltf"


def skeleton_url() -> str:
    return f"{AUX_BASE}/data/skeleton.glb"


# ---------------------------------------------------------------------------
# Converter doubles
# ---------------------------------------------------------------------------

class StubConverter:
    """Writes a GLB magic header, or fails the way it is told to."""

    def __init__(
        self,
        *,
        raises: Exception | None = None,
        returns: bool = True,
        relative_to_cwd: bool = False,
    ) -> None:
        self.raises = raises
        self.returns = returns
        self.resolves_relative_to_cwd = relative_to_cwd
        self.calls: list[tuple[Path, Path, ConverterOptions]] = []
        self.cwd_during_call: list[Path] = []
        self.saw_skeleton: list[bool] = []

    async def convert(self, input_path: Path, output_path: Path, options: ConverterOptions) -> bool:
        self.calls.append((input_path, output_path, options))
        self.cwd_during_call.append(Path.cwd())
        skeleton = Path("data/skeleton.glb") if self.resolves_relative_to_cwd else (
            options.working_dir / "data" / "skeleton.glb"
        )
        self.saw_skeleton.append(skeleton.is_file())
        if self.raises is not None:
            raise self.raises
        if self.returns:
            output_path.write_bytes(GLB_MAGIC)
        return self.returns


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def staging_root(tmp_path: Path) -> Path:
    root = tmp_path / "staging"
    root.mkdir()
    return root


@pytest.fixture
def settings(staging_root: Path) -> Settings:
    return Settings(
        metadata_api_key=API_KEY,
        storage_credentials=StorageCredentials(
            access_key_id="GOOG1EXAMPLE", secret_access_key="secret"
        ),
        bucket_name=BUCKET,
        metadata_base_url=METADATA_BASE,
        content_base_url=CONTENT_BASE,
        aux_base_url=AUX_BASE,
        storage_public_host=PUBLIC_HOST,
        converter_command=["true"],
        staging_root=staging_root,
    )


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()


@pytest.fixture
def publisher(fake_s3: FakeS3) -> StoragePublisher:
    return StoragePublisher(BUCKET, fake_s3, PUBLIC_HOST)


@pytest.fixture
def router() -> Router:
    return Router()


@pytest_asyncio.fixture
async def client(router: Router):
    async with httpx.AsyncClient(transport=httpx.MockTransport(router)) as c:
        yield c


@pytest.fixture
def credentials_env() -> dict[str, str]:
    document = {"access_key_id": "GOOG1EXAMPLE", "secret_access_key": "secret"}
    return {
        "ALCHEMY_API_KEY": API_KEY,
        "GOOGLE_CLOUD_CREDENTIALS": base64.b64encode(json.dumps(document).encode()).decode(),
        "GCS_BUCKET_NAME": BUCKET,
    }
