import json
from io import BytesIO
from urllib.parse import quote

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from sona.core.config import Settings, settings as default_settings
from sona.core.errors import StorageError, UploadError

logger = structlog.get_logger()


def _with_scheme(endpoint: str) -> str:
    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"http://{endpoint}"
    return endpoint.rstrip("/")


class StorageService:
    """S3-compatible object storage for generated audio (MinIO/S3)."""

    def __init__(self, config: Settings | None = None, client=None) -> None:
        config = config or default_settings
        self.bucket = config.storage_bucket
        self.region = config.s3_region

        self.endpoint = _with_scheme(config.s3_endpoint) if config.s3_endpoint else None
        public = config.s3_public_endpoint or config.s3_endpoint
        self.public_endpoint = _with_scheme(public) if public else None

        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            config=Config(signature_version="s3v4"),
        )

    def public_url(self, key: str) -> str:
        path = quote(key)
        if self.public_endpoint:
            return f"{self.public_endpoint}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store `data` under `key` and return its public URL."""
        try:
            self.client.upload_fileobj(
                BytesIO(data), self.bucket, key, ExtraArgs={"ContentType": content_type}
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("upload_failed", bucket=self.bucket, key=key, error=str(e))
            raise UploadError(f"Failed to upload {key}: {e}") from e

        logger.info("file_uploaded", bucket=self.bucket, key=key, size=len(data))
        return self.public_url(key)

    def bucket_exists(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return True
        except (BotoCoreError, ClientError):
            return False

    def ensure_bucket_exists(self) -> None:
        """Create the bucket if needed and make its objects publicly readable."""
        if self.bucket_exists():
            logger.info("bucket_ready", bucket=self.bucket)
            return

        policy = {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": "*",
                    "Action": ["s3:GetObject"],
                    "Resource": [f"arn:aws:s3:::{self.bucket}/*"],
                }
            ],
        }
        try:
            if self.endpoint is None and self.region != "us-east-1":
                self.client.create_bucket(
                    Bucket=self.bucket,
                    CreateBucketConfiguration={"LocationConstraint": self.region},
                )
            else:
                self.client.create_bucket(Bucket=self.bucket)
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to prepare bucket {self.bucket}: {e}") from e
        logger.info("bucket_created", bucket=self.bucket)
