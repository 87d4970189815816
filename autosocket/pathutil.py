"""Path utilities for cross-platform Enfusion resource path handling."""

from pathlib import Path

DEFAULT_ROOT_ANCHORS = ("Prefabs/", "Assets/")


def to_resource_sep(path: str) -> str:
    """Normalize path separators to forward slashes for resource names.

    Use at the filesystem→resource-name boundary. Enfusion resource names
    (``{GUID}Prefabs/Props/Door.et``) always use forward slashes, but on
    Windows ``pathlib`` and ``os.path`` produce backslashes.
    """
    return path.replace("\\", "/")


def rel_from_known_roots(abs_path: str | Path, anchors=DEFAULT_ROOT_ANCHORS) -> str:
    """Cut an absolute path down to the resource-relative part.

    The result starts at the first anchor segment (``Prefabs/``, ``Assets/``)
    found case-insensitively in the path. Falls back to the file name.
    """
    p = to_resource_sep(str(abs_path))
    lowered = p.lower()
    for anchor in anchors:
        idx = lowered.find("/" + anchor.lower())
        if idx != -1:
            return p[idx + 1 :]
    return Path(p).name or p


def is_under(directory: str, root: str | None) -> bool:
    """Case-insensitive check that ``directory`` lives under ``root``."""
    if not root:
        return False
    d = to_resource_sep(str(Path(directory))).lower().rstrip("/")
    r = to_resource_sep(str(Path(root))).lower().rstrip("/")
    return d == r or d.startswith(r + "/")
