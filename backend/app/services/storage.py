"""
DarkMode Backend — Document Storage Providers
===============================================

What:  Where uploaded document bytes live.
Why:   Development writes to local disk; production uses S3 (or any
       S3-compatible store such as Cloudflare R2 via AWS_ENDPOINT).
How:   StorageProvider is the capability set (upload / download / delete /
       get_url). `build_storage_provider()` picks one variant from settings
       once, at import time; callers only ever see the interface.

Keys look like `documents/<epoch-ms>-<8 hex>-<sanitized filename>` for both
providers, so rows stay valid if a deployment switches provider and copies
the objects.
"""

import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from app.config import Settings, settings
from app.exceptions import FileStorageError

logger = logging.getLogger(__name__)

KEY_PREFIX = "documents"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def make_storage_key(filename: str) -> str:
    safe = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._") or "file"
    return f"{KEY_PREFIX}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe[:120]}"


class StorageProvider(ABC):
    """
    Contract:
        - upload() stores bytes and returns the key to persist on the row
        - download() / delete() take that key
        - get_url() returns a time-limited direct URL, or None when the
          provider cannot serve directly and the API must stream the bytes
        - provider-specific failures are wrapped in FileStorageError
    """

    name: str = "abstract"

    @abstractmethod
    async def upload(self, content: bytes, filename: str, content_type: str) -> str:
        ...

    @abstractmethod
    async def download(self, key: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def get_url(self, key: str) -> Optional[str]:
        ...


class LocalStorageProvider(StorageProvider):
    name = "local"

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        # Keys come from the database, but never let one escape the root
        if not path.is_relative_to(self.root):
            raise FileStorageError("Invalid storage key", context={"key": key})
        return path

    async def upload(self, content: bytes, filename: str, content_type: str) -> str:
        key = make_storage_key(filename)
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"key": key, "os_error": str(e)},
            )
        logger.info("Stored %s (%d bytes) on local disk", key, len(content))
        return key

    async def download(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise FileStorageError("File not available", context={"key": key, "os_error": str(e)})

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Delete: %s already gone", key)
        except OSError as e:
            raise FileStorageError("Failed to delete file", context={"key": key, "os_error": str(e)})

    async def get_url(self, key: str) -> Optional[str]:
        return None


class S3StorageProvider(StorageProvider):
    """boto3 is synchronous; every call runs in the threadpool."""

    name = "s3"

    def __init__(self, config: Settings, client=None):
        self.bucket = config.aws_s3_bucket
        self.url_ttl = config.signed_url_ttl_seconds
        self._client = client or boto3.session.Session().client(
            "s3",
            region_name=config.aws_region or None,
            endpoint_url=config.aws_endpoint or None,
            aws_access_key_id=config.aws_access_key_id or None,
            aws_secret_access_key=config.aws_secret_access_key or None,
            config=Config(
                signature_version="s3v4",
                # R2 and most S3-compatible stores want path-style addressing
                s3={"addressing_style": "path" if config.aws_endpoint else "auto"},
            ),
        )

    async def _run(self, operation: str, key: str, fn, **kwargs):
        try:
            return await run_in_threadpool(fn, **kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 %s failed for %s: %s", operation, key, str(e))
            raise FileStorageError(
                message="File storage operation failed",
                context={"operation": operation, "key": key, "error": str(e)},
            )

    async def upload(self, content: bytes, filename: str, content_type: str) -> str:
        key = make_storage_key(filename)
        await self._run(
            "put_object", key, self._client.put_object,
            Bucket=self.bucket, Key=key, Body=content, ContentType=content_type,
        )
        logger.info("Stored %s (%d bytes) in bucket %s", key, len(content), self.bucket)
        return key

    async def download(self, key: str) -> bytes:
        response = await self._run("get_object", key, self._client.get_object, Bucket=self.bucket, Key=key)
        return await run_in_threadpool(response["Body"].read)

    async def delete(self, key: str) -> None:
        await self._run("delete_object", key, self._client.delete_object, Bucket=self.bucket, Key=key)

    async def get_url(self, key: str) -> Optional[str]:
        return await self._run(
            "generate_presigned_url", key, self._client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.url_ttl,
        )


def build_storage_provider(config: Settings) -> StorageProvider:
    if config.storage_type == "s3":
        provider: StorageProvider = S3StorageProvider(config)
    else:
        provider = LocalStorageProvider(config.storage_root)
    logger.info("Document storage: %s", provider.name)
    return provider


storage = build_storage_provider(settings)
