"""
Prefab Index Store - persistence for the prefab index cache.

The whole cache is one JSON document. Writers are serialized by a re-entrant
lock and each save replaces the document atomically, so a concurrent reader
sees either the previous or the new complete cache.
"""

import logging
import os
import threading
from pathlib import Path

from ..core.config import get_prefab_index_path
from ..core.repository import JsonFileRepository
from .schemas import CacheStatus, PrefabIndex, template_key

logger = logging.getLogger("autosocket.prefab_index")


def _mtime_seconds(path: str | Path) -> float:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return 0.0


class PrefabIndexStore:
    """Load, save and incrementally update the prefab cache."""

    def __init__(self, repository=None):
        """
        Args:
            repository: Object with load()/save()/location. Defaults to the
                        JSON file in the data directory.
        """
        self.repository = repository or JsonFileRepository(get_prefab_index_path())
        self._write_lock = threading.RLock()

    @property
    def location(self) -> str:
        return self.repository.location

    def load(self) -> PrefabIndex:
        """Current cache contents; empty when absent or corrupt."""
        data = self.repository.load()
        if data is None:
            return PrefabIndex()
        try:
            return PrefabIndex.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Prefab cache at %s is corrupt, starting empty: %s", self.location, e)
            return PrefabIndex()

    def save(self, index: PrefabIndex) -> None:
        with self._write_lock:
            index.touch()
            self.repository.save(index.to_dict())

    def register(self, et_path: str | Path, meta_path: str | Path, name_value: str) -> PrefabIndex:
        """Write-through upsert of a newly created template, without a rescan."""
        et_str = str(et_path)
        meta_str = str(meta_path)
        with self._write_lock:
            index = self.load()
            index.upsert(template_key(et_str), et_str, name_value)
            index.meta_mtime[meta_str] = _mtime_seconds(meta_str)
            self.save(index)
        logger.info("Registered %s in prefab cache", name_value)
        return index

    def status(self) -> CacheStatus:
        data = self.repository.load()
        if data is None:
            return CacheStatus()
        index = PrefabIndex.from_dict(data)
        return CacheStatus(
            has_cache=True,
            cache_path=self.location,
            svn_root=index.svn_root or None,
            generated=index.generated,
            prefab_count=len(index.name_index),
        )
