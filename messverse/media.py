"""
Media store abstraction for Cloudinary and in-memory testing.
"""

from __future__ import annotations

import io
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import cloudinary
import cloudinary.uploader

from messverse.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadOptions:
    """Where an image goes and how the host should normalize it."""

    folder: str
    public_id: Optional[str] = None
    overwrite: bool = False
    max_width: int = 2200
    max_height: int = 2200
    quality: str = "auto"
    fetch_format: str = "auto"

    def transformation(self) -> list[dict]:
        # "limit" only shrinks: the image fits within the box, aspect kept.
        return [
            {"width": self.max_width, "height": self.max_height, "crop": "limit"},
            {"quality": self.quality},
            {"fetch_format": self.fetch_format},
        ]


@dataclass(frozen=True)
class UploadResult:
    url: str
    asset_id: str


class MediaStoreClient(Protocol):
    """Defines the operations the API needs from the image host."""

    def upload(self, data: bytes, options: UploadOptions) -> UploadResult:
        ...

    def delete(self, asset_id: str) -> bool:
        ...


@dataclass
class InMemoryMediaStore:
    """Test double for media host interactions."""

    base_url: str = "https://media.example.test"
    assets: dict = field(default_factory=dict)
    uploads: list = field(default_factory=list)
    deleted: list = field(default_factory=list)

    def upload(self, data: bytes, options: UploadOptions) -> UploadResult:
        name = options.public_id or uuid.uuid4().hex
        asset_id = f"{options.folder}/{name}"
        if asset_id in self.assets and not options.overwrite and options.public_id:
            raise UpstreamFailure(f"Asset already exists: {asset_id}")
        self.assets[asset_id] = bytes(data)
        self.uploads.append((asset_id, options))
        # Versioned URL so an overwrite yields a new address, as the host does.
        return UploadResult(
            url=f"{self.base_url}/v{len(self.uploads)}/{asset_id}",
            asset_id=asset_id,
        )

    def delete(self, asset_id: str) -> bool:
        self.deleted.append(asset_id)
        return self.assets.pop(asset_id, None) is not None


@dataclass
class CloudinaryMediaStore:
    """
    Cloudinary-backed image store. Credentials are applied once at construction.
    """

    cloud_name: str
    api_key: str
    api_secret: str

    def __post_init__(self):
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=self.api_key,
            api_secret=self.api_secret,
            secure=True,
        )

    def upload(self, data: bytes, options: UploadOptions) -> UploadResult:
        params = {
            "resource_type": "image",
            "folder": options.folder,
            "overwrite": options.overwrite,
            "transformation": options.transformation(),
        }
        if options.public_id:
            params["public_id"] = options.public_id
        try:
            result = cloudinary.uploader.upload(io.BytesIO(data), **params)
        except Exception as exc:
            raise UpstreamFailure(f"Cloudinary upload failed: {exc}") from exc

        url = result.get("secure_url") or result.get("url")
        asset_id = result.get("public_id")
        if not url or not asset_id:
            raise UpstreamFailure(f"Cloudinary upload returned no asset: {result!r}")
        return UploadResult(url=url, asset_id=asset_id)

    def delete(self, asset_id: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(
                asset_id, resource_type="image", invalidate=True
            )
        except Exception:
            logger.warning("Cloudinary delete failed for %s", asset_id, exc_info=True)
            return False
        outcome = (result or {}).get("result")
        if outcome != "ok":
            logger.warning("Cloudinary delete for %s returned %r", asset_id, outcome)
            return False
        return True
