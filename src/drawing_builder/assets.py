"""
Asset repository access for templates, drawings and DDX descriptions.

Assets are addressed by repository path (e.g. /content/dam/iec/ddx.xml) and
stored with named renditions. Only the "original" rendition is read by the
merge endpoint. Two backends share the same layout, where the rendition of
an asset lives at:

    <path>/_jcr_content/renditions/<rendition>

- FileSystemAssetRepository reads from a local directory tree
- S3AssetRepository reads objects from an S3 bucket (S3_BUCKET_NAME)

A missing asset or rendition raises NotFound; nothing is cached, every load
goes back to the backing store.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

import boto3
from botocore.exceptions import ClientError

from .documents import DEFAULT_CONTENT_TYPE, Document
from .errors import ConfigurationError, NotFound
from .models import AssetSettings
from .utils import normalize_asset_path

logger = logging.getLogger(__name__)

ORIGINAL_RENDITION = "original"

_MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


class AssetRepository(Protocol):
    def get_rendition(self, path: str, rendition: str) -> BinaryIO:
        """Open the named rendition of an asset, raising NotFound if absent."""
        ...


def rendition_key(path: str, rendition: str) -> str:
    """
    Storage key of an asset rendition, relative to the repository root.

    Example:
        >>> rendition_key("/content/dam/iec/ddx.xml", "original")
        "content/dam/iec/ddx.xml/_jcr_content/renditions/original"
    """
    return f"{normalize_asset_path(path)}/_jcr_content/renditions/{rendition}"


class FileSystemAssetRepository:
    """
    Asset repository backed by a local directory.

    A plain file stored directly at the asset path is accepted as its own
    original rendition, which keeps local fixtures simple.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, relative: str, path: str, rendition: str) -> Path:
        candidate = (self.root / relative).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise NotFound(path, rendition)
        return candidate

    def get_rendition(self, path: str, rendition: str) -> BinaryIO:
        asset_dir = self._resolve(normalize_asset_path(path), path, rendition)
        if not asset_dir.exists():
            raise NotFound(path)

        if asset_dir.is_file():
            if rendition != ORIGINAL_RENDITION:
                raise NotFound(path, rendition)
            return asset_dir.open("rb")

        rendition_file = self._resolve(rendition_key(path, rendition), path, rendition)
        if not rendition_file.is_file():
            raise NotFound(path, rendition)
        return rendition_file.open("rb")


class S3AssetRepository:
    """Asset repository backed by an S3 bucket."""

    def __init__(self, bucket: str, prefix: str = "", client=None) -> None:
        if not bucket:
            raise ConfigurationError("S3 asset backend selected but no bucket configured")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self._client = client

    @property
    def client(self):
        # Created lazily so that configuring the backend never needs credentials
        if self._client is None:
            self._client = boto3.client("s3")
        return self._client

    def _key(self, path: str, rendition: str) -> str:
        key = rendition_key(path, rendition)
        return f"{self.prefix}/{key}" if self.prefix else key

    def get_rendition(self, path: str, rendition: str) -> BinaryIO:
        key = self._key(path, rendition)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_OBJECT_CODES:
                logger.info(f"s3://{self.bucket}/{key} does not exist")
                raise NotFound(path, rendition) from e
            logger.error(f"S3 read failed for s3://{self.bucket}/{key}: {e}")
            raise
        return response["Body"]


def build_asset_repository(settings: AssetSettings) -> AssetRepository:
    if settings.backend == "s3":
        return S3AssetRepository(settings.bucket, settings.prefix)
    return FileSystemAssetRepository(Path(settings.root))


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


def load_asset(repository: AssetRepository, path: str, rendition: str = ORIGINAL_RENDITION) -> Document:
    """
    Load an asset rendition as a Document.

    This might be a template PDF, a drawing PDF or a DDX/XML file.

    Args:
        repository: Backend to read from
        path: Repository path of the asset (e.g. /content/dam/...)
        rendition: Rendition name, "original" unless configured otherwise

    Returns:
        Document over the rendition bytes

    Raises:
        NotFound: If the asset or rendition does not exist
    """
    logger.info(f"Loading {rendition} rendition of {path}")
    stream: Optional[BinaryIO] = repository.get_rendition(path, rendition)
    if stream is None:
        raise NotFound(path, rendition)
    return Document(stream, guess_content_type(path))
