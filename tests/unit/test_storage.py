"""
Unit tests for sona/services/storage.py

Tests uploads, public URLs and bucket preparation against a mocked boto3 client.
"""

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from sona.core.config import Settings
from sona.core.errors import StorageError, UploadError
from sona.services import StorageService


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def storage(s3_client) -> StorageService:
    config = Settings(s3_endpoint="localhost:9000", s3_public_endpoint=None, storage_bucket="audio-files")
    return StorageService(config, client=s3_client)


class TestPublicUrl:

    @pytest.mark.unit
    def test_minio_url(self, storage: StorageService):
        assert storage.public_url("generated/a_1.wav") == "http://localhost:9000/audio-files/generated/a_1.wav"

    @pytest.mark.unit
    def test_public_endpoint_takes_precedence(self, s3_client):
        config = Settings(
            s3_endpoint="http://minio:9000",
            s3_public_endpoint="https://cdn.example.com/",
            storage_bucket="audio-files",
        )

        url = StorageService(config, client=s3_client).public_url("generated/a_1.mp3")

        assert url == "https://cdn.example.com/audio-files/generated/a_1.mp3"

    @pytest.mark.unit
    def test_aws_url(self, s3_client):
        config = Settings(s3_endpoint=None, s3_public_endpoint=None, s3_region="eu-west-1", storage_bucket="audio-files")

        url = StorageService(config, client=s3_client).public_url("generated/a_1.mp3")

        assert url == "https://audio-files.s3.eu-west-1.amazonaws.com/generated/a_1.mp3"


class TestPut:

    @pytest.mark.unit
    def test_uploads_with_content_type(self, storage: StorageService, s3_client, sample_wav_bytes):
        url = storage.put("generated/a_1.wav", sample_wav_bytes, "audio/wav")

        assert url == "http://localhost:9000/audio-files/generated/a_1.wav"
        s3_client.upload_fileobj.assert_called_once()
        fileobj, bucket, key = s3_client.upload_fileobj.call_args.args
        assert fileobj.read() == sample_wav_bytes
        assert bucket == "audio-files"
        assert key == "generated/a_1.wav"
        assert s3_client.upload_fileobj.call_args.kwargs["ExtraArgs"] == {"ContentType": "audio/wav"}

    @pytest.mark.unit
    def test_upload_failure_raises(self, storage: StorageService, s3_client):
        s3_client.upload_fileobj.side_effect = client_error("NoSuchBucket", "PutObject")

        with pytest.raises(UploadError, match="generated/a_1.wav"):
            storage.put("generated/a_1.wav", b"RIFF", "audio/wav")


class TestEnsureBucket:

    @pytest.mark.unit
    def test_existing_bucket_is_left_alone(self, storage: StorageService, s3_client):
        storage.ensure_bucket_exists()

        s3_client.head_bucket.assert_called_once_with(Bucket="audio-files")
        s3_client.create_bucket.assert_not_called()

    @pytest.mark.unit
    def test_missing_bucket_is_created_public(self, storage: StorageService, s3_client):
        s3_client.head_bucket.side_effect = client_error("404", "HeadBucket")

        storage.ensure_bucket_exists()

        s3_client.create_bucket.assert_called_once_with(Bucket="audio-files")
        policy = json.loads(s3_client.put_bucket_policy.call_args.kwargs["Policy"])
        statement = policy["Statement"][0]
        assert statement["Action"] == ["s3:GetObject"]
        assert statement["Principal"] == "*"
        assert statement["Resource"] == ["arn:aws:s3:::audio-files/*"]

    @pytest.mark.unit
    def test_aws_region_constraint(self, s3_client):
        config = Settings(s3_endpoint=None, s3_region="eu-west-1", storage_bucket="audio-files")
        s3_client.head_bucket.side_effect = client_error("404", "HeadBucket")

        StorageService(config, client=s3_client).ensure_bucket_exists()

        s3_client.create_bucket.assert_called_once_with(
            Bucket="audio-files",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    @pytest.mark.unit
    def test_creation_failure_raises(self, storage: StorageService, s3_client):
        s3_client.head_bucket.side_effect = client_error("404", "HeadBucket")
        s3_client.create_bucket.side_effect = client_error("AccessDenied", "CreateBucket")

        with pytest.raises(StorageError, match="audio-files"):
            storage.ensure_bucket_exists()
