"""
Data structures for the prefab index cache.

The cache holds four parallel maps over every indexed entity template:

- name_index:      lowercase file name -> "{GUID}relative/path"
- guid_index:      GUID                -> "{GUID}relative/path"
- et_path_index:   lowercase file name -> absolute template path
- guid_path_index: GUID                -> absolute template path

plus ``meta_mtime`` (sidecar path -> mtime seconds) for incremental rescans.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from ..metadata import extract_guid

CACHE_VERSION = 1


class ScanPhase(str, Enum):
    IDLE = "idle"
    WALKING = "walking"
    RECONCILING = "reconciling"
    PERSISTED = "persisted"


def _str_map(value) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def _float_map(value) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    out = {}
    for k, v in value.items():
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            out[str(k)] = float(v)
    return out


def template_key(et_path: str | Path) -> str:
    """Index key for a template: its lowercase file name."""
    name = Path(et_path).name
    return (name or str(et_path)).lower()


@dataclass
class PrefabIndex:
    """In-memory form of the persisted prefab cache."""

    svn_root: str = ""
    generated: Optional[str] = None
    name_index: dict[str, str] = field(default_factory=dict)
    guid_index: dict[str, str] = field(default_factory=dict)
    et_path_index: dict[str, str] = field(default_factory=dict)
    guid_path_index: dict[str, str] = field(default_factory=dict)
    meta_mtime: dict[str, float] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.name_index)

    def upsert(self, key: str, et_path: str, name_value: str) -> Optional[str]:
        """Insert or update one record in all indices. Returns its GUID, if any."""
        previous = self.name_index.get(key)
        old_guid = extract_guid(previous) if previous else None
        if old_guid and self.guid_path_index.get(old_guid) == et_path:
            # The file's GUID changed; its old GUID must not keep pointing at it
            self.guid_index.pop(old_guid, None)
            self.guid_path_index.pop(old_guid, None)
        self.name_index[key] = name_value
        self.et_path_index[key] = et_path
        guid = extract_guid(name_value)
        if guid:
            self.guid_index[guid] = name_value
            self.guid_path_index[guid] = et_path
        return guid

    def prune(self, present_keys: set[str], present_et_paths: set[str]) -> int:
        """Drop records whose files were not seen. Returns the removed key count."""
        before = len(self.name_index)
        self.name_index = {k: v for k, v in self.name_index.items() if k in present_keys}
        self.et_path_index = {k: v for k, v in self.et_path_index.items() if k in present_keys}
        self.guid_path_index = {
            g: p for g, p in self.guid_path_index.items() if p in present_et_paths
        }
        self.guid_index = {
            g: v for g, v in self.guid_index.items() if g in self.guid_path_index
        }
        self.meta_mtime = {m: t for m, t in self.meta_mtime.items() if Path(m).is_file()}
        return max(0, before - len(self.name_index))

    def clear(self):
        self.name_index.clear()
        self.guid_index.clear()
        self.et_path_index.clear()
        self.guid_path_index.clear()
        self.meta_mtime.clear()

    def touch(self):
        self.generated = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "version": CACHE_VERSION,
            "generated": self.generated,
            "svn_root": self.svn_root,
            "name_index": dict(sorted(self.name_index.items())),
            "guid_index": dict(sorted(self.guid_index.items())),
            "et_path_index": dict(sorted(self.et_path_index.items())),
            "guid_path_index": dict(sorted(self.guid_path_index.items())),
            "meta_mtime": dict(sorted(self.meta_mtime.items())),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PrefabIndex":
        """Build from a persisted document, skipping entries of the wrong type."""
        svn_root = data.get("svn_root")
        generated = data.get("generated")
        return cls(
            svn_root=svn_root if isinstance(svn_root, str) else "",
            generated=generated if isinstance(generated, str) else None,
            name_index=_str_map(data.get("name_index")),
            guid_index=_str_map(data.get("guid_index")),
            et_path_index=_str_map(data.get("et_path_index")),
            guid_path_index=_str_map(data.get("guid_path_index")),
            meta_mtime=_float_map(data.get("meta_mtime")),
        )


@dataclass
class ScanResult:
    """Outcome of one scan."""

    entry_count: int
    cache_path: str
    meta_seen: int = 0
    updated: int = 0
    removed_keys: int = 0
    rebuilt: bool = False

    def to_dict(self) -> dict:
        return {
            "entry_count": self.entry_count,
            "cache_path": self.cache_path,
            "meta_seen": self.meta_seen,
            "updated": self.updated,
            "removed_keys": self.removed_keys,
            "rebuilt": self.rebuilt,
        }


@dataclass
class CacheStatus:
    """Summary of the persisted cache."""

    has_cache: bool = False
    cache_path: Optional[str] = None
    svn_root: Optional[str] = None
    generated: Optional[str] = None
    prefab_count: int = 0

    def to_dict(self) -> dict:
        return {
            "has_cache": self.has_cache,
            "cache_path": self.cache_path,
            "svn_root": self.svn_root,
            "generated": self.generated,
            "prefab_count": self.prefab_count,
        }
