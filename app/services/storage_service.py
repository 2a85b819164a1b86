import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage as gcs

from app.config import Settings
from app.core.errors import StorageError

logger = logging.getLogger(__name__)

VARIANT_EXTENSION = ".jpg"


class StorageBackend(ABC):
    """Where photo variants live. One backend is selected at startup"""

    name = "storage"

    @abstractmethod
    def put_variant(self, key: str, data: bytes, content_type: str) -> str:
        """Store one variant under `key` and return its public URL"""

    @abstractmethod
    def delete_by_id_prefix(self, photo_id: str) -> None:
        """Remove every stored variant whose key starts with `photo_id`"""

    def check_connection(self) -> bool:
        return True


class LocalStorageBackend(StorageBackend):
    """Variants written to a directory served by the app under `url_prefix`"""

    name = "local"

    def __init__(self, upload_dir: str, url_prefix: str = "/uploads/photos"):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def put_variant(self, key: str, data: bytes, content_type: str) -> str:
        filename = f"{key}{VARIANT_EXTENSION}"
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            (self.upload_dir / filename).write_bytes(data)
        except OSError as e:
            logger.error(f"Local write failed for {filename}: {e}")
            raise StorageError(f"Failed to write {filename}: {e.strerror or e}") from e

        return f"{self.url_prefix}/{filename}"

    def delete_by_id_prefix(self, photo_id: str) -> None:
        if not self.upload_dir.is_dir():
            return
        try:
            for path in self.upload_dir.iterdir():
                if path.name.startswith(photo_id):
                    path.unlink()
        except OSError as e:
            logger.error(f"Local delete failed for {photo_id}: {e}")
            raise StorageError(f"Failed to delete photo {photo_id}: {e.strerror or e}") from e

    def check_connection(self) -> bool:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        return os.access(self.upload_dir, os.W_OK)


class S3StorageBackend(StorageBackend):
    """S3-compatible object storage through boto3"""

    name = "s3"

    def __init__(
            self,
            bucket_name: str,
            prefix: str = "photos",
            endpoint_url: Optional[str] = None,
            region: Optional[str] = None,
            access_key_id: Optional[str] = None,
            secret_access_key: Optional[str] = None,
            client=None,
    ):
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.endpoint_url = endpoint_url
        self.region = region
        self.s3_client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
        )

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}/{key}{VARIANT_EXTENSION}" if self.prefix else f"{key}{VARIANT_EXTENSION}"

    def _public_url(self, object_key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{object_key}"
        return f"https://{self.bucket_name}.s3.{self.region or 'us-east-1'}.amazonaws.com/{object_key}"

    def put_variant(self, key: str, data: bytes, content_type: str) -> str:
        object_key = self._object_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 error on {object_key}: {e}")
            raise StorageError(f"Failed to upload {object_key} to S3: {e}") from e

        return self._public_url(object_key)

    def delete_by_id_prefix(self, photo_id: str) -> None:
        list_prefix = f"{self.prefix}/{photo_id}" if self.prefix else photo_id
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=list_prefix):
                for obj in page.get("Contents", []):
                    self.s3_client.delete_object(Bucket=self.bucket_name, Key=obj["Key"])
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 delete failed for {photo_id}: {e}")
            raise StorageError(f"Failed to delete photo {photo_id} from S3: {e}") from e

    def check_connection(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"S3 bucket {self.bucket_name} unreachable: {e}")
            return False


class GCSStorageBackend(StorageBackend):
    """Google Cloud Storage bucket"""

    name = "gcs"

    def __init__(
            self,
            bucket_name: str,
            prefix: str = "photos",
            project_id: Optional[str] = None,
            key_file: Optional[str] = None,
            client=None,
    ):
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        if client is None:
            if key_file:
                client = gcs.Client.from_service_account_json(key_file, project=project_id)
            else:
                client = gcs.Client(project=project_id)
        self.client = client
        self.bucket = client.bucket(bucket_name)

    def _object_name(self, key: str) -> str:
        return f"{self.prefix}/{key}{VARIANT_EXTENSION}" if self.prefix else f"{key}{VARIANT_EXTENSION}"

    def put_variant(self, key: str, data: bytes, content_type: str) -> str:
        object_name = self._object_name(key)
        try:
            blob = self.bucket.blob(object_name)
            blob.upload_from_string(data, content_type=content_type)
        except GoogleAPIError as e:
            logger.error(f"GCS error on {object_name}: {e}")
            raise StorageError(f"Failed to upload {object_name} to GCS: {e}") from e

        return f"https://storage.googleapis.com/{self.bucket_name}/{object_name}"

    def delete_by_id_prefix(self, photo_id: str) -> None:
        list_prefix = f"{self.prefix}/{photo_id}" if self.prefix else photo_id
        try:
            for blob in self.client.list_blobs(self.bucket_name, prefix=list_prefix):
                blob.delete()
        except GoogleAPIError as e:
            logger.error(f"GCS delete failed for {photo_id}: {e}")
            raise StorageError(f"Failed to delete photo {photo_id} from GCS: {e}") from e

    def check_connection(self) -> bool:
        try:
            return self.bucket.exists()
        except GoogleAPIError as e:
            logger.warning(f"GCS bucket {self.bucket_name} unreachable: {e}")
            return False


def create_storage_backend(settings: Settings) -> StorageBackend:
    """Build the backend named by STORAGE_TYPE"""
    storage_type = settings.STORAGE_TYPE.lower()

    if storage_type == "local":
        return LocalStorageBackend(settings.UPLOAD_DIR, settings.PUBLIC_URL_PREFIX)
    if storage_type == "s3":
        return S3StorageBackend(
            bucket_name=settings.S3_BUCKET_NAME,
            prefix=settings.S3_PREFIX,
            endpoint_url=settings.S3_ENDPOINT_URL,
            region=settings.S3_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
    if storage_type == "gcs":
        return GCSStorageBackend(
            bucket_name=settings.GCS_BUCKET_NAME,
            prefix=settings.GCS_PREFIX,
            project_id=settings.GOOGLE_CLOUD_PROJECT_ID,
            key_file=settings.GOOGLE_CLOUD_KEY_FILE,
        )

    raise ValueError(f"Unsupported storage type: {settings.STORAGE_TYPE}")
