"""JSON persistence for analysis settings."""
import json
import os
import logging
from dataclasses import asdict, fields

from phototriage.core.models import AnalysisSettings
from phototriage.core.scorer import MAX_HEALTH_TIMEOUT, MAX_SCORE_TIMEOUT

log = logging.getLogger("phototriage.settings")


def _clamped(settings: AnalysisSettings) -> AnalysisSettings:
    settings.score_timeout = min(max(float(settings.score_timeout), 0.1), MAX_SCORE_TIMEOUT)
    settings.health_timeout = min(max(float(settings.health_timeout), 0.1), MAX_HEALTH_TIMEOUT)
    return settings


def load_settings(path: str) -> AnalysisSettings:
    """Read settings from ``path``.

    A missing or unreadable file gives the defaults. Unknown keys are
    ignored so older builds can read newer files.
    """
    if not os.path.isfile(path):
        return AnalysisSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("settings root is not an object")
    except (OSError, ValueError) as e:
        log.warning("Ignoring unreadable settings %s: %s", path, e)
        return AnalysisSettings()

    known = {f.name for f in fields(AnalysisSettings)}
    unknown = set(data) - known
    if unknown:
        log.debug("Ignoring unknown settings keys: %s", ", ".join(sorted(unknown)))
    try:
        settings = AnalysisSettings(**{k: v for k, v in data.items() if k in known})
        return _clamped(settings)
    except (TypeError, ValueError) as e:
        log.warning("Invalid settings in %s: %s", path, e)
        return AnalysisSettings()


def save_settings(path: str, settings: AnalysisSettings) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, indent=2, sort_keys=True)
    os.replace(tmp, path)
    log.debug("Settings saved to %s", path)
