"""Bulk enumeration of published hashes in the S3 bucket, via boto3.

Published hashes are encoded in object keys rather than object bodies:
``<prefix>/<name>/<hash>``.  One paginated ``list_objects_v2`` walk answers
"what is published" for every artifact of a kind at once.

boto3 is synchronous; every call runs in a worker thread so the planner's
event loop keeps resolving other artifacts meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class MalformedListingError(RuntimeError):
    """Raised when a bucket listing cannot be parsed."""


class ObjectStoreError(RuntimeError):
    """Raised when the bucket cannot be listed or written (remote or transient)."""


def get_client(*, region: str = "", timeout: float | None = None):
    """Create an S3 client.  Credentials come from the usual AWS sources."""
    options: dict = {}
    if timeout is not None:
        options.update(connect_timeout=timeout, read_timeout=timeout)
    return boto3.client("s3", region_name=region or None, config=Config(**options))


def parse_hash_listing(keys: Iterable[str], prefix: str) -> dict[str, str]:
    """Turn object keys into ``{name: hash}``.

    Keys that are not exactly ``<prefix>/<name>/<hash>`` are ignored.
    """
    depth = len(prefix.strip("/").split("/"))
    hashes: dict[str, str] = {}
    for key in keys:
        if not isinstance(key, str):
            raise MalformedListingError(f"Non-string object key under '{prefix}': {key!r}")
        parts = key.split("/")
        if len(parts) != depth + 2 or not parts[-1]:
            continue
        hashes[parts[-2]] = parts[-1]
    return hashes


def _list_keys(client, bucket: str, prefix: str) -> list[str]:
    keys: list[str] = []
    paginator = client.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        for obj in page.get("Contents") or []:
            if "Key" not in obj:
                raise MalformedListingError(f"Listing entry without Key under '{prefix}'")
            keys.append(obj["Key"])
    return keys


async def list_published_hashes(
    bucket: str, prefix: str, *, region: str = "", timeout: float | None = None
) -> dict[str, str]:
    """Enumerate ``s3://<bucket>/<prefix>/<name>/<hash>`` objects."""
    client = get_client(region=region, timeout=timeout)
    try:
        keys = await asyncio.to_thread(_list_keys, client, bucket, prefix)
    except (ClientError, BotoCoreError) as exc:
        raise ObjectStoreError(f"Listing s3://{bucket}/{prefix} failed: {exc}") from exc
    hashes = parse_hash_listing(keys, prefix)
    logger.info("s3://%s/%s: %d published hashes", bucket, prefix, len(hashes))
    return hashes


async def upload_file(
    path: str, bucket: str, key: str, *, region: str = "", timeout: float | None = None
) -> None:
    client = get_client(region=region, timeout=timeout)
    try:
        await asyncio.to_thread(client.upload_file, path, bucket, key)
    except (ClientError, BotoCoreError, S3UploadFailedError) as exc:
        raise ObjectStoreError(f"Upload to s3://{bucket}/{key} failed: {exc}") from exc
    logger.info("Uploaded %s to s3://%s/%s", path, bucket, key)
