"""Durable object storage for published artifacts."""

from .publisher import StoragePublisher, build_s3_client, get_publisher

__all__ = ["StoragePublisher", "build_s3_client", "get_publisher"]
