from .config import (
    DEBUG,
    PREFAB_INDEX_FILENAME,
    SETTINGS_FILENAME,
    get_data_dir,
    ensure_data_dir,
    get_prefab_index_path,
    get_settings_path,
    scan_timing_enabled,
    get_blender_timeout,
)
from .repository import JsonFileRepository, InMemoryRepository
from .settings import AutoSettings, SettingsStore
from .svn_detect import detect_svn_root

__all__ = [
    "DEBUG",
    "PREFAB_INDEX_FILENAME",
    "SETTINGS_FILENAME",
    "get_data_dir",
    "ensure_data_dir",
    "get_prefab_index_path",
    "get_settings_path",
    "scan_timing_enabled",
    "get_blender_timeout",
    "JsonFileRepository",
    "InMemoryRepository",
    "AutoSettings",
    "SettingsStore",
    "detect_svn_root",
]
