"""Naming profile: declarative pattern tables for asset-tree conventions.

Profiles hold the filename conventions, tag spellings and directory rules the
scanner, resolver and generators match against, so a new engine naming
convention is a JSON change rather than a code change.

Usage:
    from autosocket.naming_profile import load_profile
    profile = load_profile()               # _defaults (+ AUTOSOCKET_PROFILE overlay)
    profile = load_profile("my_project")   # explicit overlay name
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

_PROFILES_DIR = Path(__file__).parent / "profiles"


@dataclass
class NamingProfile:
    """All naming conventions consumed by the scanner, resolver and generators."""

    profile_name: str = ""

    # Entity template file extension and its sidecar suffix
    template_extension: str = ".et"
    template_meta_suffix: str = ".et.meta"

    # Model, socket sidecar and mesh interchange extensions
    model_extension: str = ".xob"
    socket_sidecar_extension: str = ".txo"
    mesh_source_extension: str = ".fbx"

    # Directory names never descended into while scanning (case-insensitive)
    exclude_dirs: list[str] = field(default_factory=list)

    # Path segments that start a resource-relative path
    root_anchors: list[str] = field(default_factory=list)

    # Sibling filename conventions; "{stem}" is replaced by the escaped model stem
    v2_model_pattern: str = ""
    zone_debris_pattern: str = ""
    phase_dir_name: str = "dst"
    phase_model_pattern: str = ""
    phase_debris_pattern: str = ""

    # Collider tag spellings, tried in order; each is followed by the zone letter
    collider_tag_prefixes: list[str] = field(default_factory=list)

    # Numeric fields rewritten by the health substitution
    health_fields: list[str] = field(default_factory=list)

    default_debris_mass: float = 10

    def compile_for_stem(self, pattern: str, stem: str) -> re.Pattern:
        """Compile a sibling filename pattern for one model stem."""
        return re.compile(pattern.replace("{stem}", re.escape(stem)), re.IGNORECASE)

    def collider_tag_regex(self) -> re.Pattern:
        """Regex matching any collider tag spelling followed by a zone letter."""
        prefixes = "|".join(re.escape(p) for p in self.collider_tag_prefixes)
        return re.compile(
            rf"(?<![A-Za-z0-9])(?P<tag>(?:{prefixes})(?P<letter>[A-Za-z]))(?![A-Za-z0-9])",
            re.IGNORECASE,
        )

    def is_excluded_dir(self, name: str) -> bool:
        lowered = name.lower()
        return any(lowered == d.lower() for d in self.exclude_dirs)


# Module-level cache: profile_name -> NamingProfile
_cache: dict[str, NamingProfile] = {}


def _load_json_profile(name: str) -> dict:
    """Load a profile JSON file by name. Raises FileNotFoundError if missing."""
    path = _PROFILES_DIR / f"{name}.json"
    if not path.exists():
        raise FileNotFoundError(
            f"Profile '{name}' not found at {path}. "
            f"Available profiles: {', '.join(p.stem for p in _PROFILES_DIR.glob('*.json'))}"
        )
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _merge_profiles(defaults: dict, overlay: dict) -> dict:
    """Merge overlay on top of defaults; lists are concatenated and deduplicated."""
    merged = dict(defaults)
    for key, value in overlay.items():
        base = merged.get(key)
        if isinstance(base, list) and isinstance(value, list):
            merged[key] = list(dict.fromkeys(base + value))
        else:
            merged[key] = value
    return merged


def load_profile(profile_name: Optional[str] = None) -> NamingProfile:
    """Load the default naming profile, optionally merged with an overlay.

    Args:
        profile_name: Overlay profile name. If None, ``AUTOSOCKET_PROFILE`` is
                      consulted; if that is unset only the defaults are used.
    """
    if profile_name is None:
        profile_name = os.environ.get("AUTOSOCKET_PROFILE") or None

    cache_key = profile_name or "_defaults"
    if cache_key in _cache:
        return _cache[cache_key]

    merged = _load_json_profile("_defaults")
    if profile_name and profile_name != "_defaults":
        merged = _merge_profiles(merged, _load_json_profile(profile_name))

    known = NamingProfile.__dataclass_fields__.keys()
    profile = NamingProfile(**{k: v for k, v in merged.items() if k in known})

    _cache[cache_key] = profile
    return profile


def clear_cache() -> None:
    """Clear the profile cache (useful for tests)."""
    _cache.clear()
