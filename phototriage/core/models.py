"""Data models for PhotoTriage."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Category(Enum):
    GOOD = "good"
    BAD = "bad"


class AnalysisMethod(Enum):
    PRIMARY = "primary"     # remote scorer answered successfully
    FALLBACK = "fallback"   # scored locally after the remote scorer failed
    FAILED = "failed"       # terminal for this session, sorts as bad


class PhotoState(Enum):
    UNANALYZED = "unanalyzed"
    ANALYZING = "analyzing"
    ANALYZED_GOOD = "analyzed_good"
    ANALYZED_BAD = "analyzed_bad"
    ANALYZED_FAILED = "analyzed_failed"


@dataclass
class AssetRecord:
    """One entry as listed by a photo library accessor."""
    id: str
    path: str
    created_at: datetime
    width: int = 0
    height: int = 0
    file_size: int = 0
    title: Optional[str] = None


@dataclass
class Photo:
    id: str
    path: str
    created_at: datetime
    width: int = 0
    height: int = 0
    file_size: int = 0
    title: Optional[str] = None
    quality_score: Optional[float] = None
    category: Optional[Category] = None
    method: Optional[AnalysisMethod] = None
    analyzed_at: Optional[datetime] = None
    raw_method_details: Optional[dict[str, Any]] = None
    selected: bool = False

    @classmethod
    def from_record(cls, record: AssetRecord) -> "Photo":
        return cls(
            id=record.id,
            path=record.path,
            created_at=record.created_at,
            width=record.width,
            height=record.height,
            file_size=record.file_size,
            title=record.title,
        )

    @property
    def is_analyzed(self) -> bool:
        return self.category is not None and self.quality_score is not None

    @property
    def is_bad(self) -> bool:
        return self.category == Category.BAD

    @property
    def state(self) -> PhotoState:
        if not self.is_analyzed:
            return PhotoState.UNANALYZED
        if self.method == AnalysisMethod.FAILED:
            return PhotoState.ANALYZED_FAILED
        if self.category == Category.GOOD:
            return PhotoState.ANALYZED_GOOD
        return PhotoState.ANALYZED_BAD

    @property
    def display_name(self) -> str:
        return self.title or f"Photo {self.created_at.date().isoformat()}"

    def apply_result(
        self,
        category: Category,
        quality_score: float,
        method: AnalysisMethod,
        details: Optional[dict[str, Any]] = None,
        analyzed_at: Optional[datetime] = None,
    ) -> None:
        self.category = category
        self.quality_score = quality_score
        self.method = method
        self.raw_method_details = dict(details or {})
        self.analyzed_at = analyzed_at

    def reset_analysis(self) -> None:
        self.quality_score = None
        self.category = None
        self.method = None
        self.analyzed_at = None
        self.raw_method_details = None


@dataclass
class CachedResult:
    category: Category
    quality_score: float
    method: AnalysisMethod
    cached_at: datetime
    raw_method_details: dict[str, Any] = field(default_factory=dict)

    @property
    def estimated_size(self) -> int:
        # Rough byte estimate, strings counted as UTF-16
        return (
            len(self.category.value) * 2
            + 8
            + len(str(self.raw_method_details)) * 2
            + 8
            + len(self.method.value) * 2
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "quality_score": self.quality_score,
            "method": self.method.value,
            "raw_method_details": self.raw_method_details,
            "cached_at": self.cached_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedResult":
        return cls(
            category=Category(data["category"]),
            quality_score=float(data.get("quality_score") or 0.0),
            method=AnalysisMethod(data.get("method", AnalysisMethod.PRIMARY.value)),
            cached_at=datetime.fromisoformat(data["cached_at"]),
            raw_method_details=dict(data.get("raw_method_details") or {}),
        )


@dataclass
class CacheStats:
    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0
    approx_memory_bytes: int = 0


@dataclass
class ScoreResult:
    """Outcome of one remote scoring call.

    ``score`` is on the remote 0-100 scale; ``category`` is the remote
    3-way string ("Good", "Moderate", "Bad") passed through untouched.
    """
    success: bool
    score: float = 0.0
    category: str = "Error"
    processing_time_ms: float = 0.0
    error: Optional[str] = None
    raw_details: dict[str, Any] = field(default_factory=dict)

    @property
    def normalized_score(self) -> float:
        return self.score / 100.0


@dataclass
class BatchSummary:
    total_images: int = 0
    successful_analyses: int = 0
    failed_analyses: int = 0
    average_score: float = 0.0
    best_score: float = 0.0
    worst_score: float = 0.0
    category_distribution: dict[str, int] = field(default_factory=dict)
    total_processing_time: float = 0.0


@dataclass
class BatchScoreResult:
    success: bool
    results: list[ScoreResult] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)
    error: Optional[str] = None


@dataclass
class BatchResult:
    photos: list[Photo]
    batch_number: int
    total_batches: int
    start: int
    end: int


@dataclass
class DeleteOutcome:
    requested: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class AnalysisSettings:
    scorer_base_url: str = "https://api-image-analyze.vercel.app"
    score_timeout: float = 30.0
    health_timeout: float = 10.0
    cache_expiry_days: float = 7.0
    cache_capacity: int = 1000
    max_dimension: int = 1024
    jpeg_quality: int = 85
    initial_load_limit: int = 50
    use_cache: bool = True
    local_fallback: bool = False
    score_from_thumbnail: bool = False
