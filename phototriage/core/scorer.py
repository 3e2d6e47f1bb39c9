"""HTTP client for the remote image quality scoring service."""
import base64
import io
import logging
from typing import Any, Optional

import requests
from PIL import Image, ImageOps

from phototriage.core.models import BatchScoreResult, BatchSummary, ScoreResult

log = logging.getLogger("phototriage.scorer")

DEFAULT_BASE_URL = "https://api-image-analyze.vercel.app"
MAX_SCORE_TIMEOUT = 30.0
MAX_HEALTH_TIMEOUT = 10.0
MAX_DIMENSION = 1024
JPEG_QUALITY = 85

_HEADERS = {"Content-Type": "application/json"}


def compress_image(
    image_bytes: bytes,
    max_dimension: int = MAX_DIMENSION,
    quality: int = JPEG_QUALITY,
) -> bytes:
    """Downscale so the longest side is at most ``max_dimension`` and re-encode as JPEG.

    Aspect ratio is preserved. Returns the input unchanged if it cannot
    be decoded, leaving the remote service to reject it.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")
            width, height = img.size
            if width > max_dimension or height > max_dimension:
                if width > height:
                    target = (max_dimension, max(1, round(height * max_dimension / width)))
                else:
                    target = (max(1, round(width * max_dimension / height)), max_dimension)
                img = img.resize(target, Image.BILINEAR)
                log.debug("Resized image from %dx%d to %dx%d", width, height, *target)
            out = io.BytesIO()
            img.save(out, "JPEG", quality=quality)
            return out.getvalue()
    except Exception as e:
        log.warning("Image compression failed, sending original bytes: %s", e)
        return bytes(image_bytes)


def _parse_result(data: Any) -> ScoreResult:
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    success = bool(data.get("success", False))
    if not success:
        return ScoreResult(
            success=False,
            error=str(data.get("error") or "Remote analysis failed"),
        )

    score = float(data["quality_score"])
    category = data.get("category")
    if not isinstance(category, str):
        category = "Unknown"
    processing_time = float(data.get("processing_time") or 0.0)
    return ScoreResult(
        success=True,
        score=score,
        category=category,
        processing_time_ms=processing_time,
        raw_details={
            "remote_score": score,
            "remote_category": category,
            "processing_time_ms": processing_time,
        },
    )


def _parse_summary(data: Any) -> BatchSummary:
    if not isinstance(data, dict):
        return BatchSummary()
    return BatchSummary(
        total_images=int(data.get("total_images") or 0),
        successful_analyses=int(data.get("successful_analyses") or 0),
        failed_analyses=int(data.get("failed_analyses") or 0),
        average_score=float(data.get("average_score") or 0.0),
        best_score=float(data.get("best_score") or 0.0),
        worst_score=float(data.get("worst_score") or 0.0),
        category_distribution={
            str(k): int(v) for k, v in (data.get("category_distribution") or {}).items()
        },
        total_processing_time=float(data.get("total_processing_time") or 0.0),
    )


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
    except ValueError:
        pass
    return f"HTTP {response.status_code}"


class QualityScorer:
    """Boundary adapter for the scoring service.

    No method raises on transport or parse failures: scoring calls return
    a result with ``success=False`` and ``is_healthy`` returns False.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        score_timeout: float = MAX_SCORE_TIMEOUT,
        health_timeout: float = MAX_HEALTH_TIMEOUT,
        max_dimension: int = MAX_DIMENSION,
        jpeg_quality: int = JPEG_QUALITY,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.score_timeout = min(score_timeout, MAX_SCORE_TIMEOUT)
        self.health_timeout = min(health_timeout, MAX_HEALTH_TIMEOUT)
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self._session = session or requests.Session()

    def close(self):
        self._session.close()

    def _encode(self, image_bytes: bytes) -> str:
        compressed = compress_image(image_bytes, self.max_dimension, self.jpeg_quality)
        log.debug(
            "Image payload %d -> %d bytes", len(image_bytes), len(compressed),
        )
        return base64.b64encode(compressed).decode("ascii")

    def is_healthy(self) -> bool:
        try:
            response = self._session.get(
                f"{self.base_url}/health",
                headers=_HEADERS,
                timeout=self.health_timeout,
            )
            return response.status_code == 200
        except Exception as e:
            log.warning("Scorer health check failed: %s", e)
            return False

    def score_single(self, image_bytes: bytes) -> ScoreResult:
        try:
            payload = {"image": self._encode(image_bytes)}
            response = self._session.post(
                f"{self.base_url}/analyze-single",
                json=payload,
                headers=_HEADERS,
                timeout=self.score_timeout,
            )
            if response.status_code != 200:
                message = _error_message(response)
                log.warning("Scorer returned %d: %s", response.status_code, message)
                return ScoreResult(success=False, error=message)
            result = _parse_result(response.json())
        except requests.exceptions.Timeout:
            log.warning("Scorer timed out after %.0fs", self.score_timeout)
            return ScoreResult(success=False, error="Request timed out")
        except Exception as e:
            log.warning("Scoring request failed: %s", e)
            return ScoreResult(success=False, error=str(e))

        if result.success:
            log.debug(
                "Scored %.1f (%s) in %.0fms",
                result.score, result.category, result.processing_time_ms,
            )
        else:
            log.warning("Remote analysis failed: %s", result.error)
        return result

    def score_batch(self, images: list[bytes]) -> BatchScoreResult:
        if not images:
            return BatchScoreResult(success=False, error="No images provided")
        try:
            payload = {"images": [self._encode(b) for b in images]}
            response = self._session.post(
                f"{self.base_url}/analyze-batch",
                json=payload,
                headers=_HEADERS,
                timeout=self.score_timeout,
            )
            if response.status_code != 200:
                return BatchScoreResult(success=False, error=_error_message(response))
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            results = []
            for item in data.get("results") or []:
                try:
                    results.append(_parse_result(item))
                except (ValueError, KeyError, TypeError) as e:
                    results.append(ScoreResult(success=False, error=str(e)))
            return BatchScoreResult(
                success=bool(data.get("success", True)),
                results=results,
                summary=_parse_summary(data.get("summary")),
                error=data.get("error"),
            )
        except requests.exceptions.Timeout:
            log.warning("Batch scoring timed out after %.0fs", self.score_timeout)
            return BatchScoreResult(success=False, error="Request timed out")
        except Exception as e:
            log.warning("Batch scoring request failed: %s", e)
            return BatchScoreResult(success=False, error=str(e))
