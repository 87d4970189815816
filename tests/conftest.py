"""Shared fixtures: isolated data directory and small asset-tree builders."""

import pytest

from autosocket.core.repository import InMemoryRepository
from autosocket.core.settings import SettingsStore
from autosocket.naming_profile import clear_cache
from autosocket.prefab_index.store import PrefabIndexStore


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch):
    """Keep every test away from the real data directory and profile cache."""
    monkeypatch.setenv("AUTOSOCKET_DATA_DIR", str(tmp_path / "_data"))
    for var in ("AUTOSOCKET_PROFILE", "AUTOSOCKET_SCAN_TIMING", "SVN_ROOT"):
        monkeypatch.delenv(var, raising=False)
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def index_store():
    return PrefabIndexStore(InMemoryRepository())


@pytest.fixture
def settings_store():
    return SettingsStore(InMemoryRepository())


def write_meta(path, guid, rel_path, klass="MetaFileClass"):
    """Write a ``Name "{GUID}path"`` sidecar at ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f'{klass} {{\n Name "{{{guid}}}{rel_path}"\n}}\n', encoding="utf-8")
    return path


def make_model(directory, stem, guid, rel_dir="Assets/Models", sockets=None, names=None):
    """Create ``<stem>.xob`` with its ``.meta`` and optional ``.txo`` sidecar.

    ``sockets`` become ``$node "socket_..."`` entries; ``names`` are written as
    extra quoted geometry names.
    """
    directory.mkdir(parents=True, exist_ok=True)
    model = directory / f"{stem}.xob"
    model.write_bytes(b"XOB")
    write_meta(directory / f"{stem}.xob.meta", guid, f"{rel_dir}/{stem}.xob")
    if sockets is not None or names is not None:
        lines = ["$hierarchy {"]
        for s in sockets or []:
            lines.append(f' $node "{s}" {{')
            lines.append("  Parent \"root\"")
            lines.append(" }")
        for n in names or []:
            lines.append(f' $mesh "{n}"')
        lines.append("}")
        (directory / f"{stem}.txo").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return model


def make_prefab(directory, name, guid, rel_dir="Prefabs/Props"):
    """Create an entity template and its sidecar; returns the template path."""
    directory.mkdir(parents=True, exist_ok=True)
    et = directory / name
    et.write_text("GenericEntity {\n}\n", encoding="utf-8")
    write_meta(directory / f"{name}.meta", guid, f"{rel_dir}/{name}")
    return et
