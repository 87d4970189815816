"""
Template-style destructible generation (preset header ``generator: dst_template``).

Phase models live in a ``dst`` folder next to the source model:

    Wall.xob
    dst/Wall_dst_1.xob          phase 1
    dst/Wall_dst_1_dbr_1.xob    phase 1 debris
    dst/Wall_dst_2.xob          phase 2
    ...

Placeholders:
    {{ENTITY_ID}}                 fresh identifier
    {{ID_<n>}}                    fresh identifier per distinct n (reused n -> same id)
    {{FIRST_PHASE_MODEL}}         {GUID}path of the lowest phase (base model if none)
    {{LAST_PHASE_MODEL}}          {GUID}path of the highest phase (base model if none)
    {{FIRST_PHASE_DEBRIS}}        "{GUID}path" "{GUID}path" ... of that phase's debris
    {{LAST_PHASE_DEBRIS}}         same, for the highest phase
    {{PHASE_MODELS}}              "{GUID}path" ... of every phase, in order

The preset's line endings (CRLF or LF) are kept in the output.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .. import ids
from ..errors import MetadataNotFoundError
from ..metadata import ObjectRef, read_object_ref
from ..naming_profile import NamingProfile, load_profile
from ..progress import ProgressCallback, emit
from .destructible import Preset, substitute_markers
from .text_edit import detect_newline, to_lf, to_newline

logger = logging.getLogger("autosocket.dst_template")

_RE_NUMBERED_ID = re.compile(r"\{\{ID_(\d+)\}\}")


@dataclass
class Phase:
    number: int
    model: Optional[ObjectRef] = None
    debris: list[tuple[int, ObjectRef]] = field(default_factory=list)


def find_phase_dir(model_path: Path, profile: NamingProfile) -> Optional[Path]:
    """The model's ``dst`` sibling folder, matched case-insensitively."""
    directory = model_path.parent
    if not directory.is_dir():
        return None
    wanted = profile.phase_dir_name.lower()
    for entry in sorted(directory.iterdir()):
        if entry.is_dir() and entry.name.lower() == wanted:
            return entry
    return None


def _ref_or_none(path: Path) -> Optional[ObjectRef]:
    try:
        return read_object_ref(path)
    except MetadataNotFoundError:
        logger.warning("Phase file without meta, skipped: %s", path)
        return None


def scan_phases(model_path: str | Path, profile: Optional[NamingProfile] = None) -> list[Phase]:
    """Phases found in the ``dst`` folder, sorted by phase number."""
    profile = profile or load_profile()
    model_path = Path(model_path)
    phase_dir = find_phase_dir(model_path, profile)
    if phase_dir is None:
        return []

    stem = model_path.stem
    phase_re = profile.compile_for_stem(profile.phase_model_pattern, stem)
    debris_re = profile.compile_for_stem(profile.phase_debris_pattern, stem)

    phases: dict[int, Phase] = {}
    for entry in phase_dir.iterdir():
        if not entry.is_file():
            continue
        m = debris_re.match(entry.name)
        if m:
            ref = _ref_or_none(entry)
            if ref:
                phase = phases.setdefault(int(m.group("phase")), Phase(int(m.group("phase"))))
                phase.debris.append((int(m.group("number")), ref))
            continue
        m = phase_re.match(entry.name)
        if m:
            ref = _ref_or_none(entry)
            if ref:
                phase = phases.setdefault(int(m.group("phase")), Phase(int(m.group("phase"))))
                phase.model = ref

    for phase in phases.values():
        phase.debris.sort(key=lambda d: d[0])
    return [phases[n] for n in sorted(phases)]


def _quoted_list(refs: list[ObjectRef]) -> str:
    if not refs:
        return '""'
    return " ".join(f'"{r.field}"' for r in refs)


def fill_placeholders(text: str, phases: list[Phase], base_field: str) -> str:
    """Fill the phase/ID placeholders of an LF-normalized template body."""
    modelled = [p for p in phases if p.model]
    first = modelled[0] if modelled else None
    last = modelled[-1] if modelled else None

    first_debris = [r for _, r in phases[0].debris] if phases else []
    last_debris = [r for _, r in phases[-1].debris] if phases else []

    numbered: dict[str, str] = {}

    def numbered_id(m: re.Match) -> str:
        key = m.group(1)
        if key not in numbered:
            numbered[key] = ids.next_sequential()
        return numbered[key]

    text = text.replace("{{ENTITY_ID}}", ids.next_sequential())
    text = _RE_NUMBERED_ID.sub(numbered_id, text)
    text = text.replace("{{FIRST_PHASE_MODEL}}", first.model.field if first else base_field)
    text = text.replace("{{LAST_PHASE_MODEL}}", last.model.field if last else base_field)
    text = text.replace("{{FIRST_PHASE_DEBRIS}}", _quoted_list(first_debris))
    text = text.replace("{{LAST_PHASE_DEBRIS}}", _quoted_list(last_debris))
    text = text.replace("{{PHASE_MODELS}}", _quoted_list([p.model for p in modelled]))
    return text


def render_dst_template(
    preset: Preset,
    model_path: str | Path,
    profile: Optional[NamingProfile] = None,
    progress: Optional[ProgressCallback] = None,
) -> str:
    """Render a template-style preset for one model.

    Raises:
        FileNotFoundError: the model does not exist.
        MetadataNotFoundError / MalformedMetadataError: bad model sidecar.
    """
    profile = profile or load_profile()
    model_path = Path(model_path)
    if not model_path.is_file():
        raise FileNotFoundError(f"Invalid model path: {model_path}")

    obj = read_object_ref(model_path)
    newline = detect_newline(preset.body)

    phases = scan_phases(model_path, profile)
    if phases:
        emit(progress, "info", f"Found {len(phases)} destruction phases for {model_path.name}", log=logger)
    else:
        emit(
            progress, "warn",
            f"No '{profile.phase_dir_name}' phases for {model_path.name}; using base model",
            log=logger,
        )

    text = fill_placeholders(to_lf(preset.body), phases, obj.field)
    text = substitute_markers(text, obj.field)
    return to_newline(text, newline)
