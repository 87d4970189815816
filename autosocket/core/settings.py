"""Persisted user settings: version-control root, save dir, extra dirs, Blender."""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .config import get_settings_path
from .repository import JsonFileRepository

logger = logging.getLogger("autosocket.settings")


@dataclass
class AutoSettings:
    svn_root: Optional[str] = None
    save_dir: Optional[str] = None
    extra_dirs: list[str] = field(default_factory=list)
    blender_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "AutoSettings":
        extra = data.get("extra_dirs") or []
        if not isinstance(extra, list):
            extra = []
        return cls(
            svn_root=data.get("svn_root") or None,
            save_dir=data.get("save_dir") or None,
            extra_dirs=[str(d) for d in extra if d],
            blender_path=data.get("blender_path") or None,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _normalize_dirs(dirs: Iterable[str]) -> list[str]:
    """Existing directories only, resolved, first occurrence kept."""
    seen: dict[str, None] = {}
    for d in dirs:
        if not d:
            continue
        p = Path(d).expanduser()
        if not p.is_dir():
            logger.debug("Dropping non-directory extra dir: %s", d)
            continue
        seen.setdefault(str(p.resolve()), None)
    return list(seen)


class SettingsStore:
    """Load/save AutoSettings through a repository (JSON file by default)."""

    def __init__(self, repository=None):
        self.repository = repository or JsonFileRepository(get_settings_path())

    def load(self) -> AutoSettings:
        data = self.repository.load()
        if data is None:
            return AutoSettings()
        return AutoSettings.from_dict(data)

    def save(self, settings: AutoSettings) -> None:
        self.repository.save(settings.to_dict())

    def update(self, **changes) -> AutoSettings:
        """Apply ``changes`` to the stored settings and save them."""
        settings = self.load()
        if changes.get("extra_dirs") is not None:
            changes["extra_dirs"] = _normalize_dirs(changes["extra_dirs"])
        for key, value in changes.items():
            if not hasattr(settings, key):
                raise TypeError(f"Unknown setting: {key}")
            setattr(settings, key, value)
        self.save(settings)
        return settings

    def remember_svn_root(self, path: str) -> AutoSettings:
        return self.update(svn_root=str(path))

    def remember_save_dir(self, path: str) -> AutoSettings:
        return self.update(save_dir=str(path))

    def remember_extra_dirs(self, dirs: Iterable[str]) -> AutoSettings:
        return self.update(extra_dirs=list(dirs))

    def remember_blender_path(self, path: str) -> AutoSettings:
        return self.update(blender_path=str(path))
