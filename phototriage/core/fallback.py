"""Local quality scoring used when the remote scorer is unavailable."""
import math
import logging
from typing import Optional

import cv2
import numpy as np

from phototriage.core.models import Category

log = logging.getLogger("phototriage.fallback")

GOOD_THRESHOLD = 0.6
# Laplacian variance at which sharpness saturates
SHARPNESS_CEILING = 1000.0


def _decode_gray(image_bytes: bytes) -> Optional[np.ndarray]:
    buf = np.frombuffer(image_bytes, dtype=np.uint8)
    if buf.size == 0:
        return None
    return cv2.imdecode(buf, cv2.IMREAD_GRAYSCALE)


def compute_sharpness(gray: np.ndarray) -> float:
    return float(cv2.Laplacian(gray, cv2.CV_64F).var())


def compute_brightness(gray: np.ndarray) -> float:
    return float(gray.mean())


def compute_quality_score(sharpness: float, brightness: float) -> float:
    """Blend sharpness and exposure into a 0.0-1.0 score."""
    sharp_norm = min(math.log(sharpness + 1) / math.log(SHARPNESS_CEILING + 1), 1.0)
    exposure = 1.0 - abs(brightness - 127.5) / 127.5
    return round(0.7 * sharp_norm + 0.3 * max(exposure, 0.0), 4)


def category_for_score(score: float) -> Category:
    return Category.GOOD if score >= GOOD_THRESHOLD else Category.BAD


def score_locally(image_bytes: bytes) -> Optional[tuple[float, dict]]:
    """Return (score, details) or None if the image cannot be decoded."""
    try:
        gray = _decode_gray(image_bytes)
        if gray is None:
            log.warning("Cannot decode image for local scoring")
            return None
        sharpness = compute_sharpness(gray)
        brightness = compute_brightness(gray)
    except Exception as e:
        log.warning("Local scoring failed: %s", e)
        return None

    score = compute_quality_score(sharpness, brightness)
    return score, {
        "sharpness": round(sharpness, 2),
        "brightness": round(brightness, 2),
        "local_score": score,
    }
