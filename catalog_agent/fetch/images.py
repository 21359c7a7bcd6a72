"""
Image Registrar Module
======================

Provides the abstract image registrar used by adapters and a local,
content-addressed filesystem implementation.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)


class ImageRegistrar(ABC):
    """
    Abstract base class for image registration.

    Adapters hand over an image URL and get back an opaque image id to
    store in an image field. Registration is blocking; callers on the
    event loop run it in a worker thread.
    """

    @abstractmethod
    def add_image(self, url: str, quiet: bool = True) -> str:
        """
        Download and register an image.

        Args:
            url: Image URL
            quiet: Log failures at debug level instead of warning

        Returns:
            Image id, or an empty string on failure
        """
        pass


class LocalImageStore(ImageRegistrar):
    """
    Local filesystem image store.

    Directory structure:
        {base_path}/{hash[:2]}/{sha256}.{ext}

    The image id is "{sha256}.{ext}", so the same image downloaded
    twice is stored once.
    """

    # Map MIME types to file extensions
    MIME_EXTENSIONS = {
        "image/jpeg": "jpg",
        "image/jpg": "jpg",
        "image/png": "png",
        "image/gif": "gif",
        "image/webp": "webp",
        "image/bmp": "bmp",
    }

    def __init__(
        self,
        base_path: str | Path,
        user_agent: str = "CatalogAgent/0.1",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize local image storage.

        Args:
            base_path: Base directory for storing images
            user_agent: User-Agent header for downloads
            timeout: Download timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.base_path = Path(base_path).expanduser().resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.user_agent = user_agent
        self.timeout = timeout
        self.transport = transport

        self._url_index: dict[str, str] = {}
        self._lock = threading.Lock()

    def _get_extension(self, mime_type: str, url: str) -> str:
        """Get file extension from the MIME type, falling back to the URL suffix."""
        ext = self.MIME_EXTENSIONS.get(mime_type)
        if ext:
            return ext
        suffix = Path(url.split("?", 1)[0]).suffix.lower().lstrip(".")
        if suffix in self.MIME_EXTENSIONS.values() or suffix == "jpeg":
            return "jpg" if suffix == "jpeg" else suffix
        return "jpg"

    def path_for(self, image_id: str) -> Path:
        """Get the storage path of an image id."""
        return self.base_path / image_id[:2] / image_id

    def add_image_data(self, content: bytes, mime_type: str, url: str = "") -> str:
        """
        Store raw image bytes.

        Returns:
            Image id, or an empty string if the content is empty
        """
        if not content:
            return ""
        image_id = f"{hashlib.sha256(content).hexdigest()}.{self._get_extension(mime_type, url)}"
        file_path = self.path_for(image_id)
        with self._lock:
            if not file_path.exists():
                file_path.parent.mkdir(parents=True, exist_ok=True)
                with open(file_path, "wb") as f:
                    f.write(content)
            if url:
                self._url_index[url] = image_id
        return image_id

    def add_image(self, url: str, quiet: bool = True) -> str:
        """Download an image and store it by content hash."""
        if not url:
            return ""
        with self._lock:
            cached = self._url_index.get(url)
        if cached:
            return cached

        log = logger.debug if quiet else logger.warning
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(
                    url,
                    headers={"User-Agent": self.user_agent},
                    follow_redirects=True,
                )
        except httpx.HTTPError as e:
            log(f"Failed to download image {url}: {e}")
            return ""

        if response.status_code != 200:
            log(f"Failed to download image {url}: HTTP {response.status_code}")
            return ""

        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if mime_type and not mime_type.startswith("image/"):
            log(f"Not an image at {url}: {mime_type}")
            return ""

        return self.add_image_data(response.content, mime_type, url)

    def has_image(self, image_id: str) -> bool:
        return bool(image_id) and self.path_for(image_id).exists()


def get_default_image_store(
    base_path: str | None = None,
    user_agent: str = "CatalogAgent/0.1",
    timeout: float = 30.0,
) -> LocalImageStore:
    """
    Get a local image store.

    The IMAGE_STORAGE_PATH environment variable overrides base_path;
    without either, images go to ~/.catalog_agent/images.
    """
    storage_path = os.environ.get("IMAGE_STORAGE_PATH") or base_path or "~/.catalog_agent/images"
    return LocalImageStore(storage_path, user_agent=user_agent, timeout=timeout)
