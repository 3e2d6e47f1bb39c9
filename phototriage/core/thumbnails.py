"""Thumbnail generation and caching."""
import os
import logging
from typing import Optional

from PIL import Image, ImageOps

log = logging.getLogger("phototriage.thumbnails")

THUMB_SIZE = (256, 256)
THUMB_QUALITY = 85


class ThumbnailCache:
    def __init__(self, cache_dir: str):
        self.cache_dir = cache_dir
        os.makedirs(cache_dir, exist_ok=True)

    def _thumb_path(self, asset_id: str) -> str:
        return os.path.join(self.cache_dir, f"{asset_id}.jpg")

    def get_thumb_path(self, asset_id: str) -> Optional[str]:
        path = self._thumb_path(asset_id)
        return path if os.path.isfile(path) else None

    def generate_thumbnail(self, asset_id: str, source_path: str) -> Optional[str]:
        dest = self._thumb_path(asset_id)
        if os.path.isfile(dest):
            return dest
        try:
            with Image.open(source_path) as img:
                img = ImageOps.exif_transpose(img)
                img = img.convert("RGB")
                img.thumbnail(THUMB_SIZE, Image.LANCZOS)
                img.save(dest, "JPEG", quality=THUMB_QUALITY)
            return dest
        except Exception as e:
            log.warning("Thumbnail failed for %s: %s", source_path, e)
            return None

    def thumbnail_bytes(self, asset_id: str, source_path: str) -> Optional[bytes]:
        path = self.generate_thumbnail(asset_id, source_path)
        if path is None:
            return None
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            log.warning("Cannot read thumbnail %s: %s", path, e)
            return None

    def remove(self, asset_id: str):
        path = self._thumb_path(asset_id)
        try:
            if os.path.isfile(path):
                os.remove(path)
        except OSError as e:
            log.debug("Cannot remove thumbnail %s: %s", path, e)
