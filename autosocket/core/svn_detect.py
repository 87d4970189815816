"""Locate the asset repository checkout (a directory named ``svn``).

Lookup order: the stored setting, then the root recorded in the prefab cache,
then a bounded walk of likely base directories.
"""

import os
import platform
import string
from pathlib import Path
from typing import Iterable, Optional

MAX_DEPTH = 4
MAX_ENTRIES = 10_000

_HOME_SUBDIRS = ("Documents", "Desktop", "Downloads", "Projects", "Project", "Work", "Workspace")


def detect_svn_root(
    stored: Optional[str] = None,
    cached: Optional[str] = None,
    bases: Optional[Iterable[Path]] = None,
) -> Optional[Path]:
    """Return the checkout root, or None if nothing was found.

    Args:
        stored: Root saved in settings; used if it is still a directory.
        cached: Root recorded in the prefab cache; used if still a directory.
        bases: Directories to walk. Defaults to ``candidate_bases()``.
    """
    for known in (stored, cached):
        if known and Path(known).is_dir():
            return Path(known)

    visited = set()
    for base in bases if bases is not None else candidate_bases():
        key = os.path.normcase(str(base))
        if key in visited:
            continue
        visited.add(key)
        found = find_svn_in_base(Path(base))
        if found:
            return found
    return None


def candidate_bases() -> list[Path]:
    """Home and its usual work folders, SVN_ROOT, and Windows drive roots."""
    bases: list[Path] = []
    home = Path.home()
    bases.append(home)
    for sub in _HOME_SUBDIRS:
        cand = home / sub
        if cand.is_dir():
            bases.append(cand)

    env = os.environ.get("SVN_ROOT")
    if env and Path(env).is_dir():
        bases.append(Path(env))

    if platform.system() == "Windows":
        for letter in string.ascii_uppercase:
            drive = Path(f"{letter}:\\")
            if drive.is_dir():
                bases.append(drive)
    return bases


def find_svn_in_base(
    base: Path, max_entries: int = MAX_ENTRIES, max_depth: int = MAX_DEPTH
) -> Optional[Path]:
    """Breadth-limited walk of ``base`` for a directory named ``svn``."""
    if not base.is_dir():
        return None

    base_depth = len(base.parts)
    seen = 0
    for dirpath, dirnames, _ in os.walk(base, followlinks=False):
        depth = len(Path(dirpath).parts) - base_depth
        for name in dirnames:
            if name.lower() == "svn":
                return Path(dirpath) / name
            seen += 1
            if seen >= max_entries:
                return None
        if depth + 1 >= max_depth:
            dirnames[:] = []
    return None
