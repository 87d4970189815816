# Prefab index for Enfusion asset trees
# Maps template file names and GUIDs to resource names and absolute paths

from pathlib import Path
from typing import Optional

from .schemas import (
    CACHE_VERSION,
    PrefabIndex,
    ScanPhase,
    ScanResult,
    CacheStatus,
    template_key,
)
from .store import PrefabIndexStore
from .scanner import PrefabScanner
from .timing import ScanTimer


def ensure_index_exists(
    root: str | Path,
    store: Optional[PrefabIndexStore] = None,
    progress=None,
) -> PrefabIndex:
    """Return the cached index, scanning ``root`` first if the cache is empty
    or was built for a different root.
    """
    store = store or PrefabIndexStore()
    index = store.load()
    root_str = str(Path(root).expanduser().resolve())
    if index.name_index and index.svn_root == root_str:
        return index

    PrefabScanner(store=store).scan(root, progress=progress)
    return store.load()


__all__ = [
    "CACHE_VERSION",
    "PrefabIndex",
    "ScanPhase",
    "ScanResult",
    "CacheStatus",
    "template_key",
    "PrefabIndexStore",
    "PrefabScanner",
    "ScanTimer",
    "ensure_index_exists",
]
