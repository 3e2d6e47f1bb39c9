"""Tests for library.py: folder discovery, ordering, reads, trash deletion."""
import io
import os
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from phototriage.core import library as library_module
from phototriage.core.library import (
    AssetNotFoundError, FolderPhotoLibrary, PhotoLibraryError, PhotoLibraryPermissionError,
    asset_id_for, extract_exif_datetime,
)


def make_photo(path: Path, mtime: float, size=(320, 240), exif_date=None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", size, (90, 140, 200))
    if exif_date:
        exif = img.getexif()
        exif[306] = exif_date   # DateTime
        img.save(path, exif=exif)
    else:
        img.save(path)
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def photo_dir(tmp_path: Path) -> Path:
    root = tmp_path / "photos"
    make_photo(root / "old.jpg", 1_000_000)
    make_photo(root / "nested" / "mid.png", 2_000_000)
    make_photo(root / "new.jpeg", 3_000_000)
    (root / "notes.txt").write_text("not a photo")
    make_photo(root / ".phototriage" / "thumbs" / "skip.jpg", 4_000_000)
    return root


@pytest.fixture
def folder_library(photo_dir, tmp_path) -> FolderPhotoLibrary:
    return FolderPhotoLibrary(str(photo_dir), str(tmp_path / "thumbs"))


class TestDiscovery:
    def test_lists_newest_first(self, folder_library):
        records, total = folder_library.list_assets(0, 10)
        assert total == 3
        assert [r.title for r in records] == ["new.jpeg", "mid.png", "old.jpg"]

    def test_paging(self, folder_library):
        records, total = folder_library.list_assets(1, 1)
        assert total == 3
        assert [r.title for r in records] == ["mid.png"]
        assert folder_library.list_assets(5, 10) == ([], 3)

    def test_record_fields(self, folder_library, photo_dir):
        records, _ = folder_library.list_assets(0, 10)
        old = records[-1]
        assert old.id == asset_id_for("old.jpg")
        assert (old.width, old.height) == (320, 240)
        assert old.file_size == os.path.getsize(photo_dir / "old.jpg")
        assert old.created_at == datetime.fromtimestamp(1_000_000)

    def test_ids_are_stable(self, photo_dir, tmp_path):
        first = FolderPhotoLibrary(str(photo_dir), str(tmp_path / "t1"))
        second = FolderPhotoLibrary(str(photo_dir), str(tmp_path / "t2"))
        assert [r.id for r in first.list_assets(0, 10)[0]] == \
            [r.id for r in second.list_assets(0, 10)[0]]

    def test_exif_date_wins_over_mtime(self, tmp_path):
        root = tmp_path / "exif"
        # Older mtime but a newer capture date
        make_photo(root / "shot.jpg", 1_000_000, exif_date="2001:02:03 04:05:06")
        make_photo(root / "plain.jpg", 2_000_000)
        lib = FolderPhotoLibrary(str(root), str(tmp_path / "thumbs"))
        records, _ = lib.list_assets(0, 10)
        assert [r.title for r in records] == ["shot.jpg", "plain.jpg"]
        assert records[0].created_at == datetime(2001, 2, 3, 4, 5, 6)

    def test_extract_exif_datetime_on_garbage(self, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"nope")
        assert extract_exif_datetime(str(path)) is None

    def test_missing_root(self, tmp_path):
        lib = FolderPhotoLibrary(str(tmp_path / "gone"), str(tmp_path / "thumbs"))
        with pytest.raises(AssetNotFoundError):
            lib.list_assets(0, 10)


class TestReads:
    def test_original_bytes(self, folder_library, photo_dir):
        records, _ = folder_library.list_assets(0, 10)
        data = folder_library.fetch_original_bytes(records[0].id)
        assert data == (photo_dir / "new.jpeg").read_bytes()

    def test_thumbnail_is_small_jpeg(self, folder_library):
        records, _ = folder_library.list_assets(0, 10)
        data = folder_library.fetch_thumbnail(records[0].id)
        with Image.open(io.BytesIO(data)) as img:
            assert img.format == "JPEG"
            assert max(img.size) <= 256

    def test_missing_file_reads_none(self, folder_library, photo_dir):
        records, _ = folder_library.list_assets(0, 10)
        (photo_dir / "new.jpeg").unlink()
        assert folder_library.fetch_original_bytes(records[0].id) is None

    def test_unknown_id(self, folder_library):
        with pytest.raises(AssetNotFoundError):
            folder_library.fetch_original_bytes("0000000000000000")


class TestDelete:
    def test_moves_to_trash(self, folder_library, monkeypatch):
        trashed = []

        def fake_trash(path):
            trashed.append(path)
            os.remove(path)

        monkeypatch.setattr(library_module, "send2trash", fake_trash)
        records, _ = folder_library.list_assets(0, 10)
        folder_library.fetch_thumbnail(records[0].id)

        deleted = folder_library.delete_assets([records[0].id, "unknown"])

        assert deleted == [records[0].id]
        assert len(trashed) == 1
        assert folder_library.thumbs.get_thumb_path(records[0].id) is None
        remaining, total = folder_library.list_assets(0, 10)
        assert total == 2
        assert records[0].id not in [r.id for r in remaining]

    def test_partial_trash_failure_is_not_reported(self, folder_library, monkeypatch):
        records, _ = folder_library.list_assets(0, 10)
        stuck = os.path.normpath(records[1].path)

        def trash(path):
            if path == stuck:
                raise OSError("trash full")
            os.remove(path)

        monkeypatch.setattr(library_module, "send2trash", trash)
        deleted = folder_library.delete_assets([records[0].id, records[1].id])
        assert deleted == [records[0].id]
        assert folder_library.list_assets(0, 10)[1] == 2

    def test_nothing_deleted_raises(self, folder_library, monkeypatch):
        def fail(path):
            raise OSError("trash full")

        monkeypatch.setattr(library_module, "send2trash", fail)
        records, _ = folder_library.list_assets(0, 10)
        with pytest.raises(PhotoLibraryError, match="Failed to delete photos from device"):
            folder_library.delete_assets([records[0].id])
        assert folder_library.list_assets(0, 10)[1] == 3

    def test_permission_denied_raises(self, folder_library, monkeypatch):
        def deny(path):
            raise PermissionError("read-only")

        monkeypatch.setattr(library_module, "send2trash", deny)
        records, _ = folder_library.list_assets(0, 10)
        with pytest.raises(PhotoLibraryPermissionError):
            folder_library.delete_assets([r.id for r in records])
        assert folder_library.list_assets(0, 10)[1] == 3
