"""
Socket -> prefab resolution.

A socket is resolved in strict priority order, first hit wins:

1. hint:  an external-tool map (normalized socket name -> GUID) whose GUID is
          indexed
2. guid:  ``socket_`` followed by 16 hex characters embedded in the name
3. name:  fuzzy candidates from the socket tail, tried as ``<candidate>.et``
          against the name index
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

from ..pathutil import is_under
from ..prefab_index.schemas import PrefabIndex

logger = logging.getLogger("autosocket.resolver")

SOCKET_PREFIX = "socket_"
TEMPLATE_EXTENSION = ".et"

TIER_HINT = "hint"
TIER_GUID = "guid"
TIER_NAME = "name"

_RE_TRAILING_DIGITS = re.compile(r"^(.+)_(\d+)$")
_RE_WHITESPACE = re.compile(r"\s")
_HEX = set("0123456789abcdef")


def normalize_socket_key(s: str) -> str:
    return s.strip().lower().replace("-", "_").replace(" ", "_")


def extract_guid_from_socket_name(name: str) -> Optional[str]:
    """``socket_<16 hex>...`` -> uppercase GUID, else None."""
    lower = name.strip().lower()
    if not lower.startswith(SOCKET_PREFIX):
        return None
    guid = lower[len(SOCKET_PREFIX) : len(SOCKET_PREFIX) + 16]
    if len(guid) == 16 and all(c in _HEX for c in guid):
        return guid.upper()
    return None


def prefab_candidates_from_socket(socket_name: str) -> list[str]:
    """Ordered fuzzy name candidates for a socket.

    ``socket_Door.Frame__02`` -> ``["door_frame_02", "door_frame"]``
    """
    s = socket_name.strip().lower()
    if not s.startswith(SOCKET_PREFIX):
        return []
    tail = s[len(SOCKET_PREFIX) :]
    pos = tail.find(TEMPLATE_EXTENSION)
    if pos != -1:
        tail = tail[:pos]
    tail = _RE_WHITESPACE.sub("_", tail.replace(".", "_"))
    while "__" in tail:
        tail = tail.replace("__", "_")
    tail = tail.strip("_")

    candidates: list[str] = []
    for value in (tail, _strip_numeric_suffix(tail)):
        if value and value not in candidates:
            candidates.append(value)
    return candidates


def _strip_numeric_suffix(tail: str) -> Optional[str]:
    m = _RE_TRAILING_DIGITS.match(tail)
    return m.group(1) if m else None


def normalize_hints(hints: Optional[Mapping[str, str]]) -> dict[str, str]:
    """Normalize hint keys and uppercase the hinted GUIDs."""
    if not hints:
        return {}
    return {normalize_socket_key(k): str(v).strip().upper() for k, v in hints.items() if v}


def _resolve_tiered(
    socket: str,
    hints: Mapping[str, str],
    by_guid: Mapping[str, str],
    by_name: Mapping[str, str],
    candidate_fn: Callable[[str], list[str]],
) -> tuple[Optional[str], Optional[str]]:
    if hints:
        guid = hints.get(normalize_socket_key(socket))
        if guid and guid in by_guid:
            return by_guid[guid], TIER_HINT

    guid = extract_guid_from_socket_name(socket)
    if guid and guid in by_guid:
        return by_guid[guid], TIER_GUID

    for cand in candidate_fn(socket):
        key = f"{cand}{TEMPLATE_EXTENSION}"
        if key in by_name:
            return by_name[key], TIER_NAME

    return None, None


def resolve(
    socket: str,
    hints: Optional[Mapping[str, str]],
    guid_index: Mapping[str, str],
    name_index: Mapping[str, str],
    candidate_fn: Callable[[str], list[str]] = prefab_candidates_from_socket,
) -> Optional[str]:
    """Resolve a socket to its prefab ``{GUID}path`` name, or None."""
    value, _ = _resolve_tiered(socket, normalize_hints(hints), guid_index, name_index, candidate_fn)
    return value


def resolve_path(
    socket: str,
    hints: Optional[Mapping[str, str]],
    guid_path_index: Mapping[str, str],
    et_path_index: Mapping[str, str],
    candidate_fn: Callable[[str], list[str]] = prefab_candidates_from_socket,
) -> Optional[str]:
    """Same tiers as ``resolve`` but yields the absolute template path."""
    value, _ = _resolve_tiered(
        socket, normalize_hints(hints), guid_path_index, et_path_index, candidate_fn
    )
    return value


@dataclass
class SocketMatch:
    socket: str
    prefab: Optional[str]
    tier: Optional[str]


@dataclass
class MatchReport:
    """Outcome of matching a model's sockets against the index."""

    mappings: list[tuple[str, str]] = field(default_factory=list)
    details: list[SocketMatch] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.details)

    @property
    def matched(self) -> int:
        return len(self.mappings)

    @property
    def unmatched(self) -> int:
        return self.total - self.matched

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "mappings": [{"socket": s, "prefab": p} for s, p in self.mappings],
            "sockets": [
                {"socket": d.socket, "prefab": d.prefab, "tier": d.tier} for d in self.details
            ],
        }


class SocketResolver:
    """Resolve sockets against one prefab index and an optional hint map."""

    def __init__(
        self,
        index: PrefabIndex,
        hints: Optional[Mapping[str, str]] = None,
        candidate_fn: Callable[[str], list[str]] = prefab_candidates_from_socket,
    ):
        self.index = index
        self.hints = normalize_hints(hints)
        self.candidate_fn = candidate_fn

    def resolve(self, socket: str) -> Optional[str]:
        return resolve(
            socket, self.hints, self.index.guid_index, self.index.name_index, self.candidate_fn
        )

    def resolve_path(self, socket: str) -> Optional[str]:
        return resolve_path(
            socket,
            self.hints,
            self.index.guid_path_index,
            self.index.et_path_index,
            self.candidate_fn,
        )

    def match(self, sockets: Iterable[str]) -> MatchReport:
        """Resolve each socket; unmatched sockets are counted, never mapped."""
        report = MatchReport()
        for socket in sockets:
            prefab, tier = _resolve_tiered(
                socket,
                self.hints,
                self.index.guid_index,
                self.index.name_index,
                self.candidate_fn,
            )
            report.details.append(SocketMatch(socket=socket, prefab=prefab, tier=tier))
            if prefab:
                report.mappings.append((socket, prefab))
            else:
                logger.debug("No prefab for socket %s", socket)
        return report

    def suggest_source_directories(
        self,
        sockets: Iterable[str],
        extra_dirs: Iterable[str] = (),
        svn_root: Optional[str] = None,
    ) -> list[str]:
        """Directories holding the templates the sockets resolve to.

        Directories already in ``extra_dirs`` are skipped, and so are those
        under ``svn_root`` when it is given.
        """
        known = {str(Path(d)).lower() for d in extra_dirs if d}
        found: set[str] = set()
        for socket in sockets:
            path = self.resolve_path(socket)
            if not path:
                continue
            parent = str(Path(path).parent)
            if parent.lower() in known:
                continue
            if svn_root and is_under(parent, svn_root):
                continue
            found.add(parent)
        return sorted(found)
