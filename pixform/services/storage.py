import uuid
from pathlib import Path
from typing import BinaryIO

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from pixform.core.config import settings
from pixform.core.exceptions import StorageError

logger = structlog.get_logger()

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "bmp": "image/bmp",
}


def content_type_for(output_format: str | None) -> str:
    return CONTENT_TYPES.get((output_format or "jpg").lower(), "application/octet-stream")


class StorageService:
    """S3-compatible storage service."""

    def __init__(self) -> None:
        endpoint = settings.minio_endpoint
        if not endpoint.startswith(("http://", "https://")):
            endpoint = f"http://{endpoint}"

        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
            config=Config(signature_version="s3v4"),
        )
        self.bucket = settings.minio_bucket

    def download_file(self, key: str, destination: str) -> str:
        """Download file from S3 to local path."""
        try:
            Path(destination).parent.mkdir(parents=True, exist_ok=True)
            self.client.download_file(self.bucket, key, destination)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error("file_download_failed", key=key, error=str(e))
            raise StorageError(f"Failed to download {key}: {e}") from e

        logger.info("file_downloaded", key=key, destination=destination)
        return destination

    def upload_file(self, local_path: str, folder: str, output_format: str) -> str:
        """Upload a processed file under ``folder`` and return its new key."""
        key = f"{folder}/{uuid.uuid4()}-{Path(local_path).stem}.{output_format}"
        extra_args = {"ContentType": content_type_for(output_format)}

        try:
            self.client.upload_file(str(local_path), self.bucket, key, ExtraArgs=extra_args)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error("file_upload_failed", key=key, error=str(e))
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.info("file_uploaded", key=key, local_path=str(local_path))
        return key

    def upload_fileobj(
        self, file_obj: BinaryIO, folder: str, filename: str, content_type: str | None = None
    ) -> str:
        """Upload a raw asset stream under ``folder`` and return its new key."""
        key = f"{folder}/{uuid.uuid4()}-{Path(filename).name}"
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self.client.upload_fileobj(file_obj, self.bucket, key, ExtraArgs=extra_args)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error("file_upload_failed", key=key, error=str(e))
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.info("file_uploaded", bucket=self.bucket, key=key)
        return key
