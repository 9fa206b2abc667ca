"""Asset registry on the S3 bucket.

Layout: images/<category>/<id>.<ext>, one integer id space per category.
New ids are max(existing) + 1; allocation is not locked, so two concurrent
uploads may land on the same id and the later write wins.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

CATEGORIES = ("items", "perks", "enemies", "settlements", "expeditions", "quests", "talents")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".gif")

SIGN_TTL = 3600
LIST_TTL = 24 * 3600

_DATA_URL = re.compile(r"^data:[^,]*;base64,")


class _S3Client(Protocol):
    def put_object(self, **kwargs: Any) -> Any: ...

    def get_paginator(self, operation_name: str) -> Any: ...

    def generate_presigned_url(self, ClientMethod: str, Params: dict, ExpiresIn: int) -> str: ...


class AssetError(RuntimeError):
    """Raised when the object store rejects an upload or listing."""


def decode_image(data: str) -> bytes:
    """Decode base64 image data, accepting an optional data-URL prefix."""
    data = _DATA_URL.sub("", data.strip())
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


class AssetRegistry:
    """Integer-keyed blobs per category with signed read URLs."""

    def __init__(
        self,
        *,
        bucket: str,
        client: _S3Client | None = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        extension: str = "webp",
    ) -> None:
        self._bucket = bucket
        self._extension = extension
        if client is None:
            import boto3

            client = boto3.client("s3", region_name=region_name, endpoint_url=endpoint_url)
        self._client = client

    def key(self, category: str, asset_id: int) -> str:
        return f"images/{category}/{asset_id}.{self._extension}"

    def ids(self, category: str) -> list[int]:
        """Sorted numeric ids of every image blob in the category."""
        prefix = f"images/{category}/"
        found: set[int] = set()
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(prefix):]
                    stem, dot, ext = name.rpartition(".")
                    if not dot or f".{ext.lower()}" not in IMAGE_EXTENSIONS:
                        continue
                    if stem.isdigit():
                        found.add(int(stem))
        except (BotoCoreError, ClientError) as e:
            raise AssetError(f"Failed to list {category} assets: {e}") from e
        return sorted(found)

    def next_id(self, category: str) -> int:
        existing = self.ids(category)
        return existing[-1] + 1 if existing else 1

    def put(
        self,
        category: str,
        data: bytes,
        content_type: str = "image/webp",
        asset_id: int | None = None,
    ) -> tuple[int, str, str]:
        """Store a blob, allocating an id when none is given.

        Returns (asset_id, s3 key, signed url).
        """
        if not asset_id or asset_id <= 0:
            asset_id = self.next_id(category)
        key = self.key(category, asset_id)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise AssetError(f"Failed to upload {key}: {e}") from e
        logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return asset_id, key, self.sign_key(key)

    def sign_key(self, key: str, ttl: int = SIGN_TTL) -> str:
        """Presigned GET url for `key`, or "" when signing fails."""
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Could not sign {key}: {e}")
            return ""

    def sign(self, category: str, asset_id: int | None, ttl: int = SIGN_TTL) -> str:
        if not asset_id or asset_id <= 0:
            return ""
        return self.sign_key(self.key(category, asset_id), ttl)

    def list(self, category: str, ttl: int = LIST_TTL) -> list[dict]:
        return [
            {"id": asset_id, "url": self.sign(category, asset_id, ttl)}
            for asset_id in self.ids(category)
        ]


# ---------------------------------------------------------------------------
# Process-wide registry
# ---------------------------------------------------------------------------

_registry: AssetRegistry | None = None


def init_registry(registry: AssetRegistry | None) -> None:
    global _registry
    _registry = registry


def registry() -> AssetRegistry:
    if _registry is None:
        raise AssetError("Object store not available")
    return _registry


def sign(category: str, asset_id: int | None, ttl: int = SIGN_TTL) -> str:
    """Sign through the process registry; "" when it is not configured."""
    if _registry is None:
        return ""
    return _registry.sign(category, asset_id, ttl)
