"""Local image storage for product, category and avatar pictures.

Files are written under `MEDIA_ROOT/upload/v<version>/<folder>/` and are
served by the application at `MEDIA_BASE_URL`. URLs follow the
`.../upload/v<version>/<public_id>.<ext>` shape so that a stored URL is
enough to find (and delete) the file again.
"""

from __future__ import annotations

import io
import logging
import re
import time
import uuid
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from ..config import settings

_LOGGER = logging.getLogger("coffee_shop.storage")
_URL_RE = re.compile(r"/upload/v(\d+)/(.+)\.([A-Za-z0-9]+)$")
_FORMAT_EXT = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp", "BMP": "bmp"}


class ImageStorageError(RuntimeError):
    """Raised when a file cannot be written to or removed from storage."""


class ImageStorage:
    def __init__(self, root: Path | None = None, base_url: str | None = None, max_bytes: int | None = None):
        self.root = Path(root or settings.MEDIA_ROOT)
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")
        self.max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES

    def _sniff_extension(self, payload: bytes) -> str:
        try:
            with Image.open(io.BytesIO(payload)) as img:
                fmt = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ImageStorageError("Image upload fail") from exc
        ext = _FORMAT_EXT.get(fmt or "")
        if not ext:
            raise ImageStorageError("Image upload fail")
        return ext

    def upload(self, payload: bytes, filename: str, folder: str) -> dict:
        """Store `payload` in `folder` and return `{public_id, url, secure_url}`."""
        if not payload or len(payload) > self.max_bytes:
            raise ImageStorageError("Image upload fail")
        ext = self._sniff_extension(payload)
        version = str(int(time.time()))
        safe_folder = re.sub(r"[^A-Za-z0-9_-]", "_", folder) or "misc"
        public_id = f"{safe_folder}/{uuid.uuid4().hex}"
        target = self.root / "upload" / f"v{version}" / f"{public_id}.{ext}"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as exc:
            _LOGGER.exception("image upload failed for %s", filename)
            raise ImageStorageError("Image upload fail") from exc
        url = f"{self.base_url}/upload/v{version}/{public_id}.{ext}"
        _LOGGER.info("image stored %s (%s bytes, original name %s)", public_id, len(payload), filename)
        return {"public_id": public_id, "url": url, "secure_url": url}

    def delete(self, image_url: str) -> dict:
        """Remove the file behind `image_url`; `{"result": "ok"|"not found"}`."""
        match = _URL_RE.search(image_url or "")
        if not match:
            raise ValueError("Invalid URL format")
        version, public_id, ext = match.groups()
        root = (self.root / "upload").resolve()
        target = (root / f"v{version}" / f"{public_id}.{ext}").resolve()
        if root not in target.parents:
            raise ValueError("Invalid URL format")
        if not target.exists():
            return {"result": "not found"}
        try:
            target.unlink()
        except OSError as exc:
            raise ImageStorageError("Image delete fail") from exc
        return {"result": "ok"}


def get_image_storage() -> ImageStorage:
    """FastAPI dependency; tests override it to point at a temp dir."""
    return ImageStorage()
