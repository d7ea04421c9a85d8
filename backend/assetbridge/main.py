import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from assetbridge.routes import assets, catalog
from assetbridge.services.catalog import get_catalog
from assetbridge.services.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)

logger = logging.getLogger("assetbridge")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigurationError here aborts startup; nothing is served half-configured
    settings = get_settings()
    entries = get_catalog()
    logger.info(
        "Starting with bucket=%s content=%s staging=%s catalog=%d entries",
        settings.bucket_name, settings.content_base_url, settings.staging_root, len(entries),
    )
    yield


app = FastAPI(title="Asset Bridge", version="0.1.0", lifespan=lifespan)
app.include_router(assets.router)
app.include_router(catalog.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
