"""
Object storage for uploaded assets.

Only two capabilities are needed from storage: signing an upload URL for the
browser and deleting objects once nothing references them. ``S3ObjectStorage``
talks to any S3-compatible endpoint through boto3; ``InMemoryObjectStorage``
stands in during development and tests.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from src.errors import StorageError

logger = logging.getLogger(__name__)


def safe_filename(name: str) -> str:
    value = re.sub(r"[^a-zA-Z0-9._-]+", "-", (name or "file").strip())
    return value or "file"


class BaseObjectStorage(ABC):
    """Abstract object storage."""

    def __init__(self, public_base_url: Optional[str] = None) -> None:
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def public_url(self, key: str) -> str:
        """Public URL a stored object will be served from."""
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"/{key}"

    @abstractmethod
    async def generate_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        """Return a signed URL the client can PUT the object to."""
        pass

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """
        Delete one object.

        Raises:
            StorageError: If the provider rejects the request.
        """
        pass


class S3ObjectStorage(BaseObjectStorage):
    """S3 (or R2/MinIO/...) storage via boto3."""

    provider_type = "s3"

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ) -> None:
        if not public_base_url:
            base = endpoint_url.rstrip("/") if endpoint_url else f"https://{bucket}.s3.amazonaws.com"
            public_base_url = f"{base}/{bucket}" if endpoint_url else base
        super().__init__(public_base_url)
        self.bucket = bucket
        self.client = boto3.client(
            "s3",
            region_name=region or None,
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            config=BotoConfig(signature_version="s3v4"),
        )
        logger.info(f"Initialized S3 object storage for bucket {bucket}")

    async def generate_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to sign upload URL for {key}: {e}")
            raise StorageError("Failed to create upload URL") from e

    async def delete_object(self, key: str) -> None:
        try:
            response = await asyncio.to_thread(
                self.client.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key}], "Quiet": True},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete object: {e}") from e

        errors = response.get("Errors") or []
        if errors:
            message = errors[0].get("Message") or errors[0].get("Code") or "unknown error"
            raise StorageError(f"Failed to delete object: {message}")


class InMemoryObjectStorage(BaseObjectStorage):
    """Dictionary-backed storage for development and testing."""

    provider_type = "memory"

    def __init__(self, public_base_url: Optional[str] = "https://cdn.example.test") -> None:
        super().__init__(public_base_url)
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        logger.info("Initialized in-memory object storage")

    def put_object(self, key: str, data: bytes = b"") -> None:
        self.objects[key] = data

    async def generate_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        return f"{self.public_url(key)}?upload=1&content-type={content_type}&expires={expires_in}"

    async def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)
        self.deleted.append(key)


class ObjectStorage:
    """
    Factory class for object storage.

    Uses S3 when a bucket is configured, otherwise in-memory storage.
    """

    _instance: Optional[BaseObjectStorage] = None

    @classmethod
    def get_storage(cls) -> BaseObjectStorage:
        if cls._instance is not None:
            return cls._instance

        from src.config import get_settings

        storage = get_settings().storage
        if storage.is_configured:
            cls._instance = S3ObjectStorage(
                bucket=storage.s3_bucket,
                region=storage.s3_region,
                endpoint_url=storage.s3_endpoint,
                access_key=storage.s3_access_key.get_secret_value() if storage.s3_access_key else None,
                secret_key=storage.s3_secret_key.get_secret_value() if storage.s3_secret_key else None,
                public_base_url=storage.s3_cdn_url,
            )
        else:
            logger.info("S3 not configured. Using in-memory object storage.")
            cls._instance = InMemoryObjectStorage(storage.s3_cdn_url or "https://cdn.example.test")
        return cls._instance

    @classmethod
    def set_storage(cls, storage: BaseObjectStorage) -> None:
        cls._instance = storage

    @classmethod
    def reset(cls) -> None:
        cls._instance = None


def get_object_storage() -> BaseObjectStorage:
    """Get the object storage instance."""
    return ObjectStorage.get_storage()
