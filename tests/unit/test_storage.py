"""
Unit tests for pixform/services/storage.py

Tests object storage access with a mocked boto3 client.
"""

import io
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from pixform.core.exceptions import StorageError
from pixform.services.storage import StorageService, content_type_for


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "operation")


@pytest.fixture
def mock_boto():
    with patch("pixform.services.storage.boto3") as mock:
        yield mock


@pytest.fixture
def storage(mock_boto):
    return StorageService()


class TestStorageService:
    """Tests for StorageService."""

    @pytest.mark.unit
    def test_client_targets_configured_endpoint(self, mock_boto):
        StorageService()

        _, kwargs = mock_boto.client.call_args
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["aws_access_key_id"] == "minioadmin"

    @pytest.mark.unit
    def test_download_file_creates_parent_directory(self, storage, temp_dir):
        destination = temp_dir / "nested" / "raw.jpg"

        result = storage.download_file("raw-uploads/abc.jpg", str(destination))

        assert result == str(destination)
        assert destination.parent.is_dir()
        storage.client.download_file.assert_called_once_with(
            "test-bucket", "raw-uploads/abc.jpg", str(destination)
        )

    @pytest.mark.unit
    def test_download_missing_object_raises_storage_error(self, storage, temp_dir):
        storage.client.download_file.side_effect = client_error("404")

        with pytest.raises(StorageError) as exc_info:
            storage.download_file("raw-uploads/missing.jpg", str(temp_dir / "raw.jpg"))

        assert "raw-uploads/missing.jpg" in str(exc_info.value)
        assert exc_info.value.error_code == "STORAGE_ERROR"

    @pytest.mark.unit
    def test_upload_file_key_and_content_type(self, storage, temp_dir):
        local = temp_dir / "out-123.png"
        local.write_bytes(b"png")

        key = storage.upload_file(str(local), "processed-files", "png")

        assert key.startswith("processed-files/")
        assert key.endswith("-out-123.png")
        args, kwargs = storage.client.upload_file.call_args
        assert args == (str(local), "test-bucket", key)
        assert kwargs["ExtraArgs"] == {"ContentType": "image/png"}

    @pytest.mark.unit
    def test_upload_keys_are_unique(self, storage, temp_dir):
        local = temp_dir / "out.jpg"
        local.write_bytes(b"jpg")

        assert storage.upload_file(str(local), "processed-files", "jpg") != storage.upload_file(
            str(local), "processed-files", "jpg"
        )

    @pytest.mark.unit
    def test_upload_failure_raises_storage_error(self, storage, temp_dir):
        storage.client.upload_file.side_effect = client_error("AccessDenied")

        with pytest.raises(StorageError):
            storage.upload_file(str(temp_dir / "out.jpg"), "processed-files", "jpg")

    @pytest.mark.unit
    def test_upload_fileobj(self, storage):
        stream = io.BytesIO(b"raw image")

        key = storage.upload_fileobj(stream, "raw-uploads", "holiday/photo.jpg", "image/jpeg")

        assert key.startswith("raw-uploads/")
        assert key.endswith("-photo.jpg")
        storage.client.upload_fileobj.assert_called_once_with(
            stream, "test-bucket", key, ExtraArgs={"ContentType": "image/jpeg"}
        )


class TestContentType:
    """Tests for output format to MIME type mapping."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "fmt,expected",
        [
            ("jpg", "image/jpeg"),
            ("JPEG", "image/jpeg"),
            ("png", "image/png"),
            ("webp", "image/webp"),
            (None, "image/jpeg"),
            ("xyz", "application/octet-stream"),
        ],
    )
    def test_content_type_for(self, fmt, expected):
        assert content_type_for(fmt) == expected
