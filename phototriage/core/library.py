"""Photo library access: the accessor interface and a folder-backed implementation."""
import os
import hashlib
import logging
import threading
from datetime import datetime
from typing import Optional, Protocol

from PIL import Image
from PIL.ExifTags import Base as ExifBase
from send2trash import send2trash

from phototriage.core.models import AssetRecord
from phototriage.core.thumbnails import ThumbnailCache
from phototriage.util.paths import SKIP_DIRS, SUPPORTED_EXTENSIONS

log = logging.getLogger("phototriage.library")

_EXIF_IFD = 0x8769
_DATE_TAGS = [
    ExifBase.DateTimeOriginal,   # 36867
    ExifBase.DateTimeDigitized,  # 36868
    ExifBase.DateTime,           # 306
]
_EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


class PhotoLibraryError(Exception):
    """Base class for accessor failures surfaced to the caller."""


class PhotoLibraryPermissionError(PhotoLibraryError):
    pass


class AssetNotFoundError(PhotoLibraryError):
    pass


class PhotoLibrary(Protocol):
    """What the analysis core needs from a platform photo library."""

    def list_assets(self, offset: int, limit: int) -> tuple[list[AssetRecord], int]:
        """Return up to ``limit`` records starting at ``offset`` plus the total count."""
        ...

    def fetch_thumbnail(self, asset_id: str) -> Optional[bytes]:
        ...

    def fetch_original_bytes(self, asset_id: str) -> Optional[bytes]:
        ...

    def delete_assets(self, asset_ids: list[str]) -> list[str]:
        """Delete the given assets and return the ids actually deleted.

        Raises PhotoLibraryError when none of them could be deleted.
        """
        ...


def extract_exif_datetime(filepath: str) -> Optional[datetime]:
    """Earliest capture date found in EXIF, or None."""
    try:
        with Image.open(filepath) as img:
            exif = img.getexif()
        if not exif:
            return None
        candidates = [exif.get_ifd(_EXIF_IFD), exif]
        for tag_id in _DATE_TAGS:
            for ifd in candidates:
                val = ifd.get(tag_id)
                if val and isinstance(val, str):
                    try:
                        return datetime.strptime(val.strip(), _EXIF_DATE_FORMAT)
                    except ValueError:
                        continue
        return None
    except Exception as e:
        log.debug("EXIF extraction failed for %s: %s", filepath, e)
        return None


def _image_size(filepath: str) -> tuple[int, int]:
    try:
        with Image.open(filepath) as img:
            return img.size
    except Exception as e:
        log.debug("Cannot read dimensions of %s: %s", filepath, e)
        return 0, 0


def asset_id_for(relpath: str) -> str:
    return hashlib.sha1(relpath.replace(os.sep, "/").encode("utf-8")).hexdigest()[:16]


class FolderPhotoLibrary:
    """Photo library backed by a directory tree.

    Records are listed newest first (EXIF capture time, else mtime).
    Deleted files go to the system trash.
    """

    def __init__(self, root: str, thumb_dir: str):
        self.root = root
        self.thumbs = ThumbnailCache(thumb_dir)
        self._records: Optional[list[AssetRecord]] = None
        self._by_id: dict[str, AssetRecord] = {}
        self._lock = threading.Lock()

    # ── Discovery ────────────────────────────────────────

    def _check_root(self):
        if not os.path.isdir(self.root):
            raise AssetNotFoundError(f"Photo folder not found: {self.root}")
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise PhotoLibraryPermissionError(f"No read access to {self.root}")

    def _collect_files(self) -> list[str]:
        files = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS]
            for fname in filenames:
                ext = os.path.splitext(fname)[1].lower()
                if ext in SUPPORTED_EXTENSIONS:
                    files.append(os.path.join(dirpath, fname))
        return files

    def _build_record(self, filepath: str) -> Optional[AssetRecord]:
        try:
            stat = os.stat(filepath)
        except OSError as e:
            log.warning("Cannot stat %s: %s", filepath, e)
            return None
        created = extract_exif_datetime(filepath) or datetime.fromtimestamp(stat.st_mtime)
        width, height = _image_size(filepath)
        relpath = os.path.relpath(filepath, self.root)
        return AssetRecord(
            id=asset_id_for(relpath),
            path=filepath,
            created_at=created,
            width=width,
            height=height,
            file_size=stat.st_size,
            title=os.path.basename(filepath),
        )

    def refresh(self) -> int:
        """Re-scan the folder. Returns the number of assets found."""
        self._check_root()
        records = []
        for fp in self._collect_files():
            rec = self._build_record(fp)
            if rec is not None:
                records.append(rec)
        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        with self._lock:
            self._records = records
            self._by_id = {r.id: r for r in records}
        log.info("Found %d photos in %s", len(records), self.root)
        return len(records)

    def _ensure_listed(self):
        if self._records is None:
            self.refresh()

    # ── Accessor interface ───────────────────────────────

    def list_assets(self, offset: int, limit: int) -> tuple[list[AssetRecord], int]:
        self._ensure_listed()
        with self._lock:
            records = self._records or []
            start = max(offset, 0)
            end = start + max(limit, 0)
            return list(records[start:end]), len(records)

    def _record(self, asset_id: str) -> AssetRecord:
        self._ensure_listed()
        with self._lock:
            rec = self._by_id.get(asset_id)
        if rec is None:
            raise AssetNotFoundError(f"Unknown photo id: {asset_id}")
        return rec

    def fetch_thumbnail(self, asset_id: str) -> Optional[bytes]:
        rec = self._record(asset_id)
        return self.thumbs.thumbnail_bytes(asset_id, rec.path)

    def fetch_original_bytes(self, asset_id: str) -> Optional[bytes]:
        rec = self._record(asset_id)
        try:
            with open(rec.path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            log.warning("Photo file missing: %s", rec.path)
            return None
        except PermissionError as e:
            raise PhotoLibraryPermissionError(str(e)) from e
        except OSError as e:
            log.warning("Cannot read %s: %s", rec.path, e)
            return None

    def delete_assets(self, asset_ids: list[str]) -> list[str]:
        self._ensure_listed()
        deleted: list[str] = []
        denied = 0
        for asset_id in asset_ids:
            with self._lock:
                rec = self._by_id.get(asset_id)
            if rec is None:
                log.warning("Cannot delete unknown photo id %s", asset_id)
                continue
            filepath = os.path.normpath(rec.path)
            if not os.path.isfile(filepath):
                log.warning("Source file missing: %s", filepath)
                continue
            try:
                send2trash(filepath)
            except PermissionError as e:
                log.error("Permission denied deleting %s: %s", filepath, e)
                denied += 1
                continue
            except Exception as e:
                log.error("Failed to delete %s: %s", filepath, e)
                continue
            deleted.append(asset_id)
            self.thumbs.remove(asset_id)

        if deleted:
            gone = set(deleted)
            with self._lock:
                self._records = [r for r in self._records or [] if r.id not in gone]
                for asset_id in gone:
                    self._by_id.pop(asset_id, None)
        elif denied:
            raise PhotoLibraryPermissionError(
                f"Delete rejected for {denied} photo(s): permission denied"
            )
        elif asset_ids:
            raise PhotoLibraryError("Failed to delete photos from device")

        log.info("Deleted %d of %d photos", len(deleted), len(asset_ids))
        return deleted
