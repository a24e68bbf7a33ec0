"""Receipt document store.

Receipt PDFs are written once under an owner-scoped key and read back only
through short-lived signed links, so a leaked link stops working and the
bucket itself never needs public read access.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional
from uuid import UUID

from leasekeeper.core.config import get_settings, StorageProvider

logger = logging.getLogger(__name__)

settings = get_settings()

PDF_CONTENT_TYPE = "application/pdf"


class DocumentStore(ABC):
    """Blob backend holding receipt artifacts."""

    @abstractmethod
    async def put(self, key: str, content: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        ...


class GCSDocumentStore(DocumentStore):
    def __init__(self, bucket_name: str, project_id: Optional[str] = None):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._bucket = None

    def _blob(self, key: str):
        if self._bucket is None:
            from google.cloud import storage

            self._bucket = storage.Client(project=self.project_id).bucket(self.bucket_name)
        return self._bucket.blob(key)

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        blob = self._blob(key)
        # Receipts are immutable once issued
        blob.cache_control = "private, max-age=31536000, immutable"
        await asyncio.to_thread(blob.upload_from_string, content, content_type=content_type)

    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        return await asyncio.to_thread(
            self._blob(key).generate_signed_url,
            version="v4",
            expiration=timedelta(seconds=ttl_seconds),
            method="GET",
        )


class S3DocumentStore(DocumentStore):
    def __init__(
        self,
        bucket_name: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._s3 = None

    @property
    def s3(self):
        if self._s3 is None:
            import boto3

            self._s3 = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
            )
        return self._s3

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self.s3.put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=content,
            ContentType=content_type,
            ServerSideEncryption="AES256",
        )

    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        return await asyncio.to_thread(
            self.s3.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=ttl_seconds,
        )


class StorageService:
    """Places receipt PDFs in the document store and signs links to them."""

    def __init__(self, provider: DocumentStore):
        self.provider = provider

    def receipt_object_path(self, owner_id: UUID, payment_id: UUID, receipt_number: str) -> str:
        return f"owners/{owner_id}/receipts/{payment_id}/{receipt_number}.pdf"

    async def store_pdf(self, object_path: str, content: bytes) -> str:
        """Upload a PDF and return a signed link to it."""
        await self.provider.put(object_path, content, PDF_CONTENT_TYPE)
        logger.info(f"[RECEIPT] Stored {object_path} ({len(content)} bytes)")
        return await self.get_download_url(object_path)

    async def get_download_url(self, object_path: str, ttl_seconds: Optional[int] = None) -> str:
        return await self.provider.signed_url(object_path, ttl_seconds or settings.receipt_url_ttl_seconds)


def get_storage_service() -> StorageService:
    """Build the configured store. Raises ValueError when its bucket is not set."""
    if settings.storage_provider == StorageProvider.GCS:
        store = GCSDocumentStore(settings.bucket_name, project_id=settings.gcs_project_id)
    else:
        store = S3DocumentStore(
            settings.bucket_name,
            region=settings.aws_region or "us-east-1",
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    return StorageService(store)
