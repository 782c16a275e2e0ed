import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.exceptions import ExternalDependencyError, NotFoundError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class StoredObject:
    body: Iterator[bytes]
    size: int
    mime_type: str


class FileStorage:
    """Design files live in a private Cloudflare R2 bucket (S3 API)."""

    def __init__(self, account_id: str, access_key_id: str, secret_access_key: str, bucket: str):
        self.bucket = bucket
        self.s3_client = boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
        )

    def open(self, key: str) -> StoredObject:
        try:
            obj = self.s3_client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFoundError("File missing from storage", reason="file_not_found")
            logger.error(f"R2 get_object failed for {key}: {exc}")
            raise ExternalDependencyError("File storage unavailable, please retry")
        except BotoCoreError as exc:
            logger.error(f"R2 get_object failed for {key}: {exc}")
            raise ExternalDependencyError("File storage unavailable, please retry")

        return StoredObject(
            body=obj["Body"].iter_chunks(CHUNK_SIZE),
            size=obj.get("ContentLength", 0),
            mime_type=obj.get("ContentType") or "application/octet-stream",
        )


@lru_cache
def _storage() -> FileStorage:
    return FileStorage(
        settings.r2_account_id,
        settings.r2_access_key_id,
        settings.r2_secret_access_key,
        settings.r2_bucket_name,
    )


def get_file_storage() -> FileStorage:
    return _storage()
