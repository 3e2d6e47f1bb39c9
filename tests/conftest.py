"""
Shared fixtures and fakes for the phototriage test suite.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

import pytest

from phototriage.core.collection import PhotoCollection
from phototriage.core.library import PhotoLibraryError, PhotoLibraryPermissionError
from phototriage.core.models import AssetRecord, ScoreResult


# ── Storage fakes ─────────────────────────────────────────────────────────────

class MemoryStore:
    """Dict-backed key/value store that counts writes."""

    def __init__(self, initial: Optional[dict] = None):
        self.data: dict[str, str] = dict(initial or {})
        self.set_calls = 0

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.set_calls += 1
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)


class BrokenStore:
    """Store whose every call fails."""

    def get(self, key):
        raise OSError("storage unavailable")

    def set(self, key, value):
        raise OSError("storage unavailable")

    def remove(self, key):
        raise OSError("storage unavailable")


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


# ── Scorer stub ───────────────────────────────────────────────────────────────

def good(score: float = 85.0) -> ScoreResult:
    return ScoreResult(
        success=True, score=score, category="Good",
        raw_details={"remote_score": score, "remote_category": "Good"},
    )


def bad(score: float = 10.0) -> ScoreResult:
    return ScoreResult(
        success=True, score=score, category="Bad",
        raw_details={"remote_score": score, "remote_category": "Bad"},
    )


def failure(error: str = "HTTP 500") -> ScoreResult:
    return ScoreResult(success=False, error=error)


def index_of(image_bytes: bytes) -> int:
    """Photo index encoded in MemoryLibrary image bytes."""
    return int(image_bytes.decode("ascii").split("-")[1])


class StubScorer:
    """Scripted stand-in for QualityScorer.

    ``script`` maps the image bytes to a ScoreResult; ``health`` is either
    a fixed answer or a callable consulted on every health check.
    """

    def __init__(
        self,
        script: Callable[[bytes], ScoreResult] = lambda _b: good(),
        health: Union[bool, Callable[[], bool]] = True,
    ):
        self.script = script
        self.health = health
        self.score_calls: list[bytes] = []
        self.health_calls = 0

    def is_healthy(self) -> bool:
        self.health_calls += 1
        return self.health() if callable(self.health) else self.health

    def score_single(self, image_bytes: bytes) -> ScoreResult:
        self.score_calls.append(image_bytes)
        return self.script(image_bytes)

    def close(self):
        pass


# ── Photo library fake ────────────────────────────────────────────────────────

def make_records(count: int) -> list[AssetRecord]:
    base = datetime(2024, 1, 1, 12, 0, 0)
    return [
        AssetRecord(
            id=f"p{i:03d}",
            path=f"/photos/IMG_{i:04d}.jpg",
            created_at=base - timedelta(minutes=i),
            width=4000,
            height=3000,
            file_size=1000 + i,
            title=f"IMG_{i:04d}.jpg",
        )
        for i in range(count)
    ]


class MemoryLibrary:
    """In-memory photo library. Image bytes are ``b"img-<index>"``."""

    def __init__(self, count: int = 0):
        self.records = make_records(count)
        self._bytes = {r.id: f"img-{i}".encode("ascii") for i, r in enumerate(self.records)}
        self.list_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.refuse_delete: set[str] = set()
        self.missing: set[str] = set()
        self.list_calls: list[tuple[int, int]] = []
        self.delete_calls: list[list[str]] = []
        self.original_reads = 0
        self.thumbnail_reads = 0

    def list_assets(self, offset, limit):
        self.list_calls.append((offset, limit))
        if self.list_error is not None:
            raise self.list_error
        return list(self.records[offset:offset + limit]), len(self.records)

    def fetch_thumbnail(self, asset_id):
        self.thumbnail_reads += 1
        if self.read_error is not None:
            raise self.read_error
        if asset_id in self.missing:
            return None
        return self._bytes.get(asset_id)

    def fetch_original_bytes(self, asset_id):
        self.original_reads += 1
        if self.read_error is not None:
            raise self.read_error
        if asset_id in self.missing:
            return None
        return self._bytes.get(asset_id)

    def delete_assets(self, asset_ids):
        self.delete_calls.append(list(asset_ids))
        if self.delete_error is not None:
            raise self.delete_error
        deleted = [a for a in asset_ids if a in self._bytes and a not in self.refuse_delete]
        self.records = [r for r in self.records if r.id not in deleted]
        for a in deleted:
            del self._bytes[a]
        return deleted


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def library() -> MemoryLibrary:
    return MemoryLibrary(120)


@pytest.fixture
def loaded_collection(library) -> PhotoCollection:
    """120 photos, all materialized."""
    collection = PhotoCollection(library)
    collection.load_initial(120)
    return collection


@pytest.fixture
def permission_denied() -> PhotoLibraryError:
    return PhotoLibraryPermissionError("access revoked")


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
