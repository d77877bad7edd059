"""Cloudflare R2 object storage for proposal PDFs"""

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import (
    PRESIGNED_URL_EXPIRATION,
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class R2AssetStorage:
    """Private bucket; customers only ever get time-limited presigned URLs"""

    def __init__(
        self,
        account_id: Optional[str] = R2_ACCOUNT_ID,
        access_key_id: Optional[str] = R2_ACCESS_KEY_ID,
        secret_access_key: Optional[str] = R2_SECRET_ACCESS_KEY,
        bucket_name: str = R2_BUCKET_NAME,
    ):
        self.bucket_name = bucket_name
        self._client = boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
        )

    def upload(self, data: bytes, key: str, content_type: str = "application/pdf") -> str:
        """Upload bytes and return the key"""
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ R2 upload failed for {key}: {e}")
            raise StorageError(f"Upload failed for {key}") from e

        logger.info(f"✅ Uploaded to R2: {key}")
        return key

    def download(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket_name, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ R2 download failed for {key}: {e}")
            raise StorageError(f"Download failed for {key}") from e

    def signed_url(self, key: str, expires_in: int = PRESIGNED_URL_EXPIRATION) -> str:
        """Generate a presigned URL for accessing a private object in R2."""
        params = {"Bucket": self.bucket_name, "Key": key}
        if key.lower().endswith(".pdf"):
            params["ResponseContentType"] = "application/pdf"
            params["ResponseContentDisposition"] = "inline"

        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Failed to generate presigned URL for {key}: {e}")
            raise StorageError(f"Could not sign URL for {key}") from e
