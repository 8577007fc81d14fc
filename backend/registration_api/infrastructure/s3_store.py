"""
S3-backed document store.

CONDITIONAL WRITES
==================

Each document is one JSON object. The object's ETag is the document version:

  - create:  PutObject with IfNoneMatch="*"  (fails if the key exists)
  - update:  PutObject with IfMatch=<etag>   (fails if someone wrote since)

S3 answers a lost race with 412 PreconditionFailed, or 409
ConditionalRequestConflict when two conditional writes overlap. Both map to
ConcurrentModification so the caller re-reads and retries.

boto3 is synchronous, so calls run in a worker thread and are bounded by
STORE_TIMEOUT_SECONDS. Transient AWS errors are retried by botocore's
standard retry mode before we ever see them.
"""

import asyncio
import json
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from registration_api.core.config import Settings
from registration_api.core.exceptions import ConcurrentModification, StoreUnavailable
from registration_api.core.logging import get_logger
from registration_api.services.interfaces.store import DocumentStore, VersionedDocument

logger = get_logger(__name__)

CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict"}
MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def get_s3_client(settings: Settings):
    """
    Build an S3 client.
    Honors AWS_S3_ENDPOINT_URL for S3-compatible local stores (MinIO).
    """
    config = Config(
        connect_timeout=settings.STORE_TIMEOUT_SECONDS,
        read_timeout=settings.STORE_TIMEOUT_SECONDS,
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        endpoint_url=settings.AWS_S3_ENDPOINT_URL,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
        config=config,
    )


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3DocumentStore(DocumentStore):
    name = "s3"

    def __init__(self, bucket: str, client, timeout: float = 5.0):
        if not bucket:
            raise ValueError("S3_REGISTRATIONS_BUCKET is required for the s3 store")
        self.bucket = bucket
        self.client = client
        self.timeout = timeout

    async def _call(self, operation: str, **kwargs):
        method = getattr(self.client, operation)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(method, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("s3_timeout", operation=operation, key=kwargs.get("Key"))
            raise StoreUnavailable(f"S3 {operation} timed out") from e
        except BotoCoreError as e:
            logger.error("s3_error", operation=operation, error=str(e))
            raise StoreUnavailable(f"S3 {operation} failed") from e

    async def get(self, key: str) -> Optional[VersionedDocument]:
        try:
            response = await self._call("get_object", Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in MISSING_CODES:
                return None
            logger.error("s3_get_failed", key=key, code=_error_code(e))
            raise StoreUnavailable(f"S3 read failed for {key}") from e

        body = await asyncio.to_thread(response["Body"].read)
        return VersionedDocument(
            key=key,
            data=json.loads(body),
            version=response["ETag"],
        )

    async def put(self, key: str, data: dict, expected_version: Optional[str]) -> str:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": json.dumps(data, indent=2).encode("utf-8"),
            "ContentType": "application/json",
        }
        if expected_version is None:
            params["IfNoneMatch"] = "*"
        else:
            params["IfMatch"] = expected_version

        try:
            response = await self._call("put_object", **params)
        except ClientError as e:
            code = _error_code(e)
            if code in CONFLICT_CODES:
                raise ConcurrentModification(key=key) from e
            logger.error("s3_put_failed", key=key, code=code)
            raise StoreUnavailable(f"S3 write failed for {key}") from e
        return response["ETag"]

    async def list_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        token = None
        while True:
            params = {"Bucket": self.bucket, "Prefix": prefix}
            if token:
                params["ContinuationToken"] = token
            try:
                response = await self._call("list_objects_v2", **params)
            except ClientError as e:
                logger.error("s3_list_failed", prefix=prefix, code=_error_code(e))
                raise StoreUnavailable(f"S3 list failed for {prefix}") from e
            keys.extend(item["Key"] for item in response.get("Contents", []))
            if not response.get("IsTruncated"):
                break
            token = response.get("NextContinuationToken")
        return sorted(keys)

    async def delete(self, key: str) -> None:
        try:
            await self._call("delete_object", Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in MISSING_CODES:
                return
            logger.error("s3_delete_failed", key=key, code=_error_code(e))
            raise StoreUnavailable(f"S3 delete failed for {key}") from e
