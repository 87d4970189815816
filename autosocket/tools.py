"""AutoSocket operations bound to the default cache and settings files.

Each function is a thin entry point used by the CLI and the MCP server. The
stores are created on demand from the data directory unless the caller passes
its own (tests pass in-memory repositories).
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from autosocket.core import (
    AutoSettings,
    SettingsStore,
    detect_svn_root,
    get_blender_timeout,
    scan_timing_enabled,
)
from autosocket.errors import PreconditionError
from autosocket.generators import (
    create_entity_template,
    create_entity_template_with_meta,
    generate_batch,
)
from autosocket.metadata import read_sockets
from autosocket.naming_profile import load_profile
from autosocket.prefab_index import (
    PrefabIndex,
    PrefabIndexStore,
    PrefabScanner,
    ScanTimer,
    ensure_index_exists,
)
from autosocket.progress import ProgressCallback
from autosocket.resolver import SocketResolver, extract_socket_guids

logger = logging.getLogger("autosocket.tools")


def _stores(index_store=None, settings_store=None):
    return index_store or PrefabIndexStore(), settings_store or SettingsStore()


def _known_root(settings: AutoSettings, index: PrefabIndex) -> Optional[str]:
    for candidate in (settings.svn_root, index.svn_root):
        if candidate and Path(candidate).is_dir():
            return candidate
    return None


def _load_index(
    index_store: PrefabIndexStore,
    settings: AutoSettings,
    progress: Optional[ProgressCallback] = None,
) -> PrefabIndex:
    """Cached index; built from the known checkout root when the cache is empty."""
    index = index_store.load()
    if index.name_index:
        return index
    root = _known_root(settings, index)
    if not root:
        logger.warning("Prefab cache is empty and no checkout root is known; sockets will not resolve")
        return index
    return ensure_index_exists(root, store=index_store, progress=progress)


def _blender_hints(model_path: str | Path, settings: AutoSettings) -> Optional[dict[str, str]]:
    return extract_socket_guids(model_path, settings.blender_path, timeout=get_blender_timeout())


# =============================================================================
# Prefab index
# =============================================================================


def scan_prefab_index(
    root: Optional[str] = None,
    verbose: bool = False,
    timing: Optional[bool] = None,
    progress: Optional[ProgressCallback] = None,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Scan the asset tree and refresh the prefab cache.

    The root is the explicit argument, else the saved setting, else the
    auto-detected checkout. A successful scan remembers the root.

    Raises:
        PreconditionError: no root given and none could be found.
        ScanRootError: the root is not a directory.
    """
    index_store, settings_store = _stores(index_store, settings_store)
    settings = settings_store.load()
    if not root:
        found = settings.svn_root or detect_svn_root(cached=index_store.load().svn_root or None)
        root = str(found) if found else None
    if not root:
        raise PreconditionError("No scan root given and no checkout root could be detected")

    if timing is None:
        timing = scan_timing_enabled()
    timer = ScanTimer() if timing else None

    scanner = PrefabScanner(store=index_store, timer=timer)
    result = scanner.scan(root, verbose=verbose, progress=progress)
    settings_store.remember_svn_root(str(Path(root).expanduser().resolve()))

    out = result.to_dict()
    if timer:
        logger.info("\n%s", timer.report())
        out["timing"] = timer.to_dict()
    return out


def get_prefab_cache_status(index_store: Optional[PrefabIndexStore] = None) -> dict:
    """Cache location, root, generation time and record count."""
    index_store = index_store or PrefabIndexStore()
    return index_store.status().to_dict()


def auto_detect_svn_root(
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> Optional[str]:
    """Find the checkout root and remember it. None when nothing was found."""
    index_store, settings_store = _stores(index_store, settings_store)
    settings = settings_store.load()
    found = detect_svn_root(stored=settings.svn_root, cached=index_store.load().svn_root or None)
    if found is None:
        return None
    root = str(found)
    if root != settings.svn_root:
        settings_store.remember_svn_root(root)
    return root


# =============================================================================
# Sockets
# =============================================================================


def resolve_model_sockets(
    model_path: str,
    use_blender: bool = False,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Resolve every socket of a model and report the tier that matched it."""
    index_store, settings_store = _stores(index_store, settings_store)
    settings = settings_store.load()
    model = Path(model_path)
    if not model.is_file():
        raise FileNotFoundError(f"Invalid model path: {model}")

    profile = load_profile()
    sockets = read_sockets(model.with_suffix(profile.socket_sidecar_extension))
    hints = _blender_hints(model, settings) if use_blender else None
    resolver = SocketResolver(_load_index(index_store, settings), hints=hints)
    report = resolver.match(sockets)
    out = report.to_dict()
    out["model"] = str(model)
    return out


def suggest_prefab_folders(
    model_path: str,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> list[str]:
    """Folders outside the checkout holding prefabs this model's sockets use."""
    index_store, settings_store = _stores(index_store, settings_store)
    settings = settings_store.load()
    model = Path(model_path)
    if not model.is_file():
        raise FileNotFoundError(f"Invalid model path: {model}")

    profile = load_profile()
    sockets = read_sockets(model.with_suffix(profile.socket_sidecar_extension))
    index = _load_index(index_store, settings)
    resolver = SocketResolver(index)
    return resolver.suggest_source_directories(
        sockets,
        extra_dirs=settings.extra_dirs,
        svn_root=_known_root(settings, index),
    )


# =============================================================================
# Entity templates
# =============================================================================


def create_template(
    model_path: str,
    save_dir: Optional[str] = None,
    use_blender: bool = True,
    with_meta: bool = False,
    progress: Optional[ProgressCallback] = None,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Create a test prefab for a model and remember the folders it used.

    Socket hints come from Blender when ``use_blender`` is set and an FBX
    sits next to the model. The folders used are written back to settings,
    including the prefab folders the resolved sockets point into.
    """
    index_store, settings_store = _stores(index_store, settings_store)
    settings = settings_store.load()
    save_dir = save_dir or settings.save_dir
    index = _load_index(index_store, settings, progress)
    svn_root = _known_root(settings, index)

    hints = _blender_hints(model_path, settings) if use_blender else None
    kwargs = dict(save_dir=save_dir, hints=hints, svn_root=svn_root, progress=progress)
    if with_meta:
        result = create_entity_template_with_meta(model_path, index, store=index_store, **kwargs)
    else:
        result = create_entity_template(model_path, index, **kwargs)

    changes = {"extra_dirs": list(settings.extra_dirs) + list(result.suggested_extra_dirs)}
    if save_dir and Path(save_dir).is_dir():
        changes["save_dir"] = str(save_dir)
    if svn_root:
        changes["svn_root"] = svn_root
    settings_store.update(**changes)
    return result.to_dict()


def create_et_from_xob(
    model_path: str,
    save_dir: Optional[str] = None,
    use_blender: bool = True,
    progress: Optional[ProgressCallback] = None,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Write ``<stem>_test_prefab.et`` for a model, with resolved socket children."""
    return create_template(model_path, save_dir, use_blender, False, progress, index_store, settings_store)


def create_et_with_meta_from_xob(
    model_path: str,
    save_dir: Optional[str] = None,
    use_blender: bool = True,
    progress: Optional[ProgressCallback] = None,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Like ``create_et_from_xob`` plus the ``.et.meta`` sidecar and a cache update."""
    return create_template(model_path, save_dir, use_blender, True, progress, index_store, settings_store)


# =============================================================================
# Destructibles
# =============================================================================


def generate_destructibles(
    models: Sequence[str],
    preset: str,
    save_dir: Optional[str] = None,
    zones: Optional[int] = None,
    health: Optional[float] = None,
    with_meta: bool = False,
    progress: Optional[ProgressCallback] = None,
    index_store: Optional[PrefabIndexStore] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Render the preset once per model into the save folder.

    The save folder falls back to the saved setting.
    """
    index_store, settings_store = _stores(index_store, settings_store)
    settings = settings_store.load()
    save_dir = save_dir or settings.save_dir
    result = generate_batch(
        list(models),
        preset,
        save_dir,
        zones=zones,
        health=health,
        with_meta=with_meta,
        store=index_store,
        progress=progress,
    )
    if result.written and save_dir != settings.save_dir:
        settings_store.remember_save_dir(str(save_dir))
    return result.to_dict()


# =============================================================================
# Settings
# =============================================================================


def get_settings(settings_store: Optional[SettingsStore] = None) -> dict:
    settings_store = settings_store or SettingsStore()
    return settings_store.load().to_dict()


def update_settings(
    svn_root: Optional[str] = None,
    save_dir: Optional[str] = None,
    blender_path: Optional[str] = None,
    extra_dirs: Optional[Sequence[str]] = None,
    settings_store: Optional[SettingsStore] = None,
) -> dict:
    """Store the given settings; arguments left as None keep their saved value."""
    settings_store = settings_store or SettingsStore()
    changes = {}
    if svn_root is not None:
        changes["svn_root"] = svn_root or None
    if save_dir is not None:
        changes["save_dir"] = save_dir or None
    if blender_path is not None:
        changes["blender_path"] = blender_path or None
    if extra_dirs is not None:
        changes["extra_dirs"] = list(extra_dirs)
    if not changes:
        return settings_store.load().to_dict()
    return settings_store.update(**changes).to_dict()


TOOLS = [
    {
        "name": "scan_prefab_index",
        "description": "Scan the asset tree for entity templates and refresh the prefab cache. Incremental: only changed sidecars are re-read.",
        "function": scan_prefab_index,
        "parameters": {
            "root": {"type": "string", "optional": True},
            "verbose": {"type": "boolean", "default": False, "optional": True},
        },
    },
    {
        "name": "resolve_sockets",
        "description": "Resolve each socket of a model to a prefab and report the tier (hint, guid, name) that matched it.",
        "function": resolve_model_sockets,
        "parameters": {
            "model_path": {"type": "string"},
            "use_blender": {"type": "boolean", "default": False, "optional": True},
        },
    },
    {
        "name": "create_entity_template",
        "description": "Create <stem>_test_prefab.et for a model with a child entity per resolved socket. with_meta also writes the .et.meta sidecar and registers the template.",
        "function": create_template,
        "parameters": {
            "model_path": {"type": "string"},
            "save_dir": {"type": "string", "optional": True},
            "use_blender": {"type": "boolean", "default": True, "optional": True},
            "with_meta": {"type": "boolean", "default": False, "optional": True},
        },
    },
    {
        "name": "generate_destructibles",
        "description": "Render a destructible preset for each model, adjusting zone count, health, debris and colliders from the model's sibling files.",
        "function": generate_destructibles,
        "parameters": {
            "models": {"type": "array", "items": {"type": "string"}},
            "preset": {"type": "string"},
            "save_dir": {"type": "string", "optional": True},
            "zones": {"type": "integer", "optional": True},
            "health": {"type": "number", "optional": True},
            "with_meta": {"type": "boolean", "default": False, "optional": True},
        },
    },
]
