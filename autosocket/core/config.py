import os
from pathlib import Path

# Set AUTOSOCKET_DEBUG=1 to see debug logging and subprocess command lines
DEBUG = os.environ.get("AUTOSOCKET_DEBUG", "").lower() in ("1", "true", "yes")

PREFAB_INDEX_FILENAME = "AutoSocket_PrefabIndex.json"
SETTINGS_FILENAME = "AutoSocket_Settings.json"

DEFAULT_BLENDER_TIMEOUT = 120.0


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def get_data_dir() -> Path:
    """Directory holding the prefab cache and settings files.

    AUTOSOCKET_DATA_DIR wins; otherwise ~/Documents/AutoSocket when a
    Documents folder exists, else ~/AutoSocket.
    """
    override = os.environ.get("AUTOSOCKET_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home = Path.home()
    documents = home / "Documents"
    if documents.is_dir():
        return documents / "AutoSocket"
    return home / "AutoSocket"


def ensure_data_dir() -> Path:
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_prefab_index_path() -> Path:
    return get_data_dir() / PREFAB_INDEX_FILENAME


def get_settings_path() -> Path:
    return get_data_dir() / SETTINGS_FILENAME


def scan_timing_enabled() -> bool:
    return _env_flag("AUTOSOCKET_SCAN_TIMING")


def get_blender_timeout() -> float:
    """Seconds allowed for one headless Blender run (AUTOSOCKET_BLENDER_TIMEOUT)."""
    raw = os.environ.get("AUTOSOCKET_BLENDER_TIMEOUT", "")
    if not raw:
        return DEFAULT_BLENDER_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_BLENDER_TIMEOUT
    return value if value > 0 else DEFAULT_BLENDER_TIMEOUT
