"""Path utilities for PhotoTriage."""
import os

APP_DIR = ".phototriage"
THUMBS_DIR = "thumbs"
LOGS_DIR = "logs"
DB_FILENAME = "cache.db"
SETTINGS_FILENAME = "settings.json"

SKIP_DIRS = frozenset({APP_DIR})

SUPPORTED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})


def get_app_dir(library_root: str) -> str:
    path = os.path.join(library_root, APP_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_db_path(library_root: str) -> str:
    return os.path.join(get_app_dir(library_root), DB_FILENAME)


def get_thumb_dir(library_root: str) -> str:
    path = os.path.join(get_app_dir(library_root), THUMBS_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_log_dir(library_root: str) -> str:
    path = os.path.join(get_app_dir(library_root), LOGS_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_settings_path(library_root: str) -> str:
    return os.path.join(get_app_dir(library_root), SETTINGS_FILENAME)


def has_existing_cache(library_root: str) -> bool:
    return os.path.isfile(os.path.join(library_root, APP_DIR, DB_FILENAME))
