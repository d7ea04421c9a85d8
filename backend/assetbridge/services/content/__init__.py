"""Stage 2: asset id → republished glTF."""

from .fetcher import description_url, download_description, fetch_description

__all__ = ["description_url", "download_description", "fetch_description"]
