"""Batch destructible generation: one ``<stem>_dst.et`` per source model."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from .. import ids
from ..errors import AutoSocketError, PreconditionError
from ..metadata import format_name
from ..naming_profile import NamingProfile, load_profile
from ..pathutil import rel_from_known_roots
from ..prefab_index.store import PrefabIndexStore
from ..progress import ProgressCallback, emit
from .destructible import Preset, load_preset, render_destructible
from .dst_template import render_dst_template
from .entity_template import build_et_meta_text

logger = logging.getLogger("autosocket.batch")

OUTPUT_SUFFIX = "_dst.et"


@dataclass
class BatchResult:
    written: list[str] = field(default_factory=list)
    meta_written: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "written": list(self.written),
            "meta_written": list(self.meta_written),
            "failed": [{"model": m, "error": e} for m, e in self.failed],
        }


def output_path_for(model_path: str | Path, save_dir: str | Path) -> Path:
    return Path(save_dir) / f"{Path(model_path).stem}{OUTPUT_SUFFIX}"


def render_for_model(
    preset: Preset,
    model_path: str | Path,
    zones: Optional[int] = None,
    health: Optional[float] = None,
    profile: Optional[NamingProfile] = None,
    progress: Optional[ProgressCallback] = None,
) -> str:
    """Render ``preset`` for one model with the generator its header selects."""
    if preset.is_dst_template:
        return render_dst_template(preset, model_path, profile=profile, progress=progress)
    return render_destructible(
        preset, model_path, zones=zones, health=health, profile=profile, progress=progress
    )


def generate_batch(
    models: Sequence[str | Path],
    preset: Preset | str | Path,
    save_dir: Optional[str | Path],
    zones: Optional[int] = None,
    health: Optional[float] = None,
    with_meta: bool = False,
    store: Optional[PrefabIndexStore] = None,
    profile: Optional[NamingProfile] = None,
    progress: Optional[ProgressCallback] = None,
) -> BatchResult:
    """Render one destructible template per model into ``save_dir``.

    A model that fails is recorded in ``failed`` and the batch continues.
    When only its ``.meta`` cannot be written, the template stays listed in
    ``written`` and the model is also listed in ``failed``.

    Raises:
        PreconditionError: no models or no save directory; nothing is written.
        FileNotFoundError: the preset path does not exist.
    """
    if not models:
        raise PreconditionError("No model files given")
    if not save_dir or not str(save_dir).strip():
        raise PreconditionError("No save folder given")

    if not isinstance(preset, Preset):
        preset = load_preset(preset)
    profile = profile or load_profile()

    out_dir = Path(save_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    if with_meta and store is None:
        store = PrefabIndexStore()

    result = BatchResult()
    total = len(models)
    for i, model in enumerate(models, start=1):
        model = Path(model)
        emit(progress, "info", f"[{i}/{total}] {model.name}", current=i - 1, total=total, log=logger)
        try:
            text = render_for_model(preset, model, zones, health, profile, progress)
            out_path = output_path_for(model, out_dir)
            out_path.write_text(text, encoding="utf-8", newline="")
        except (OSError, AutoSocketError, ValueError) as e:
            emit(progress, "error", f"Failed {model.name}: {e}", log=logger)
            result.failed.append((str(model), str(e)))
            continue

        result.written.append(str(out_path))
        emit(progress, "info", f"Wrote {out_path}", current=i, total=total, log=logger)

        if with_meta:
            name_value = format_name(ids.next_random(), rel_from_known_roots(out_path, profile.root_anchors))
            meta_path = Path(f"{out_path}.meta")
            try:
                meta_path.write_text(build_et_meta_text(name_value), encoding="utf-8", newline="\n")
            except OSError as e:
                emit(progress, "error", f"Failed to write {meta_path.name}: {e}", log=logger)
                result.failed.append((str(model), f"meta not written: {e}"))
                continue
            result.meta_written.append(str(meta_path))
            try:
                store.register(out_path, meta_path, name_value)
            except (OSError, ValueError) as e:
                emit(progress, "warn", f"Failed to update prefab cache: {e}", log=logger)

    emit(
        progress, "info",
        f"Batch finished: {len(result.written)} written, {len(result.failed)} failed",
        current=total, total=total, log=logger,
    )
    return result
