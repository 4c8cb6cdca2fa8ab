# scriptgrader/services/storage.py
"""Local file storage for uploaded answer-sheet pages."""

import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from scriptgrader.core.config import settings
from scriptgrader.core.errors import ImageStorageError
from scriptgrader.services.page_order import PageImage

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def mime_type_from_name(name: str) -> str:
    return MIME_TYPES.get(Path(name).suffix.lower(), "image/jpeg")


def build_filename(student_id: int, assessment_id: int, original_name: str, index: int) -> str:
    ext = Path(original_name or "").suffix.lower() or ".jpg"
    timestamp = int(time.time() * 1000)
    return f"{student_id}-{assessment_id}-{timestamp}-{index}{ext}"


class LocalImageStorage:
    def __init__(self, root: str | os.PathLike, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    def _path_for(self, url: str) -> Path:
        prefix = self.url_prefix + "/"
        if not url.startswith(prefix):
            raise ImageStorageError(f"Not a stored image URL: {url}")
        name = url[len(prefix):]
        # no sub-directories or parent traversal
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ImageStorageError(f"Invalid stored image name: {url}")
        return self.root / name

    def save(self, data: bytes, filename: str) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        url = f"{self.url_prefix}/{filename}"
        path = self._path_for(url)
        path.write_bytes(data)
        logger.info(f"Stored {len(data)} bytes at {path}")
        return url

    def exists(self, url: str) -> bool:
        try:
            return self._path_for(url).is_file()
        except ImageStorageError:
            return False

    def load(self, url: str) -> PageImage:
        path = self._path_for(url)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageStorageError(f"Failed to read stored image {url}: {e}") from e
        return PageImage(data=data, mime_type=mime_type_from_name(path.name), url=url)

    def load_many(self, urls: List[str]) -> List[PageImage]:
        return [self.load(url) for url in urls]


def get_storage(root: Optional[str] = None) -> LocalImageStorage:
    return LocalImageStorage(root or settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
