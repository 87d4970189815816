"""
Destructible-zone templates.

A preset is an entity template body with marker tokens, optionally preceded
by a ``Key: value`` header ending at the first blank line. Its
``FractalParts { ... }`` block holds one sub-block per zone, tagged with
``PartId "<letter>"``. Rendering a preset for a model:

1. Scan the model's siblings for per-zone debris models and collider tags.
2. Make the zone count match (clone the last zone, relabel letters/GUIDs).
3. Substitute object/model/guid/vec3 markers.
4. Rewrite zone health fields.
5. Expand ``{{DEBRIS_ID-<L>}}`` and ``{{COLLIDERS_ID-<L>}}`` markers.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .. import ids
from ..errors import MetadataNotFoundError, TemplateError
from ..metadata import ObjectRef, parse_quoted_names, read_object_ref
from ..naming_profile import NamingProfile, load_profile
from ..progress import ProgressCallback, emit
from .text_edit import (
    detect_newline,
    find_block_after_keyword,
    split_children,
    to_lf,
    to_newline,
)

logger = logging.getLogger("autosocket.destructible")

MAX_ZONES = 26
MIN_HEALTH = 1
MAX_HEALTH = 1_000_000

MARKER_OBJECT = "{{OBJECT_FROM_XOB}}"
MARKER_V2_MODEL = "{{MODEL_FROM_V2}}"

ZONE_CONTAINER = "FractalParts"

_RE_HEADER_LINE = re.compile(r"^([A-Za-z][A-Za-z0-9_-]*):[ \t]*(.*?)[ \t]*$")
_RE_PART_ID = re.compile(r'(PartId\s+")([A-Za-z])(")')
_RE_GEN_GUID_BRACED = re.compile(r"\{\s*gen\s+guid\s*\}", re.IGNORECASE)
_RE_GEN_GUID_QUOTED = re.compile(r'"\s*gen\s+guid\s*"', re.IGNORECASE)
_RE_GEN_VEC3 = re.compile(r"\{\s*gen\s+vec3\s*\}", re.IGNORECASE)
# Braced GUIDs used as identifiers; "{GUID}path" resource references are left alone
_RE_ID_GUID = re.compile(r"\{([0-9A-Fa-f]{16})\}(?![A-Za-z0-9_/.\\])")
_RE_DEBRIS_MARKER = re.compile(
    r"^(?P<indent>[ \t]*)\{\{DEBRIS_ID-(?P<letter>[A-Za-z])\}\}[ \t]*(?:\r?\n|$)", re.MULTILINE
)
_RE_COLLIDERS_MARKER = re.compile(r"\{\{COLLIDERS_ID-(?P<letter>[A-Za-z])\}\}")


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


@dataclass
class Preset:
    """A destructible preset: header fields plus the template body."""

    body: str
    id: Optional[str] = None
    title: Optional[str] = None
    generator: Optional[str] = None
    description: Optional[str] = None
    extra: dict[str, str] = field(default_factory=dict)

    @property
    def is_dst_template(self) -> bool:
        return (self.generator or "").strip().lower() == "dst_template"


def parse_preset(text: str) -> Preset:
    """Split an optional ``Key: value`` header from the template body.

    The header is every line before the first blank line, and only counts
    as a header when each of those lines is ``Key: value``. Otherwise the
    whole text is body.
    """
    lines = text.splitlines(keepends=True)
    header: dict[str, str] = {}
    body_start = None
    offset = 0
    for line in lines:
        stripped = line.strip()
        if not stripped:
            body_start = offset + len(line)
            break
        m = _RE_HEADER_LINE.match(stripped)
        if not m:
            break
        header[m.group(1).lower()] = m.group(2)
        offset += len(line)

    if not header or body_start is None:
        return Preset(body=text)

    known = {"id", "title", "generator", "description"}
    return Preset(
        body=text[body_start:],
        id=header.get("id"),
        title=header.get("title"),
        generator=header.get("generator"),
        description=header.get("description"),
        extra={k: v for k, v in header.items() if k not in known},
    )


def load_preset(path: str | Path) -> Preset:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Preset not found: {path}")
    # newline="" keeps \r\n so template-style presets can preserve it
    with open(path, "r", encoding="utf-8", newline="") as f:
        return parse_preset(f.read())


# ---------------------------------------------------------------------------
# Marker substitution
# ---------------------------------------------------------------------------


def substitute_markers(
    text: str, object_field: str, v2_field: Optional[str] = None
) -> str:
    """Replace object/model/guid/vec3 markers.

    Every ``{gen guid}`` / ``"gen guid"`` occurrence gets its own fresh
    random identifier. ``{gen vec3}`` is always the zero vector.
    """
    text = text.replace(MARKER_OBJECT, object_field)
    text = text.replace(MARKER_V2_MODEL, v2_field or object_field)
    text = _RE_GEN_GUID_BRACED.sub(lambda _: f"{{{ids.next_random()}}}", text)
    text = _RE_GEN_GUID_QUOTED.sub(lambda _: f'"{ids.next_random()}"', text)
    text = _RE_GEN_VEC3.sub("0 0 0", text)
    return text


# ---------------------------------------------------------------------------
# Zone blocks
# ---------------------------------------------------------------------------


@dataclass
class ZoneBlock:
    letter: str
    text: str


def clamp_zone_count(n: int) -> int:
    return max(1, min(MAX_ZONES, int(n)))


def zone_letters(n: int) -> list[str]:
    return [chr(ord("A") + i) for i in range(clamp_zone_count(n))]


def zone_letter_of(block_text: str) -> Optional[str]:
    m = _RE_PART_ID.search(block_text)
    return m.group(2).upper() if m else None


def find_zone_blocks(text: str) -> list[ZoneBlock]:
    """Letter-tagged children of the FractalParts block, in file order."""
    span = find_block_after_keyword(text, ZONE_CONTAINER)
    if span is None:
        return []
    blocks = []
    for seg in split_children(text[span.body_start : span.body_end]):
        if not seg.is_block:
            continue
        letter = zone_letter_of(seg.text)
        if letter:
            blocks.append(ZoneBlock(letter=letter, text=seg.text))
    return blocks


def relabel_zone(block_text: str, old: str, new: str) -> str:
    """Relabel a cloned zone block from letter ``old`` to ``new``.

    Rewrites the PartId, quoted ``"<L>"`` and ``"<L><digits>"`` tokens and
    ``{{..._ID-<L>}}`` markers. Every standalone braced GUID gets a fresh
    value (the same old GUID maps to the same new one). A GUID directly
    followed by a path, as in ``"{GUID}Assets/Wall.emat"``, names another
    resource and is kept.
    """
    old_u, new_u = old.upper(), new.upper()
    old_l, new_l = old.lower(), new.lower()

    text = _RE_PART_ID.sub(lambda m: f"{m.group(1)}{new_u}{m.group(3)}", block_text)

    def quoted(m: re.Match) -> str:
        letter = m.group(1)
        repl = new_u if letter == old_u else new_l
        return f'"{repl}{m.group(2)}"'

    text = re.sub(rf'"([{old_u}{old_l}])(\d*)"', quoted, text)
    text = re.sub(
        rf"(\{{\{{[A-Za-z0-9_]*ID-){old_u}(\}}\}})",
        lambda m: f"{m.group(1)}{new_u}{m.group(2)}",
        text,
    )

    fresh: dict[str, str] = {}

    def new_guid(m: re.Match) -> str:
        key = m.group(1).upper()
        if key not in fresh:
            fresh[key] = ids.next_random()
        return f"{{{fresh[key]}}}"

    return _RE_ID_GUID.sub(new_guid, text)


def ensure_zone_count(text: str, n: int) -> str:
    """Make the FractalParts block hold exactly ``n`` zones, lettered A onwards.

    ``n`` is clamped to 1..26. Existing blocks for wanted letters are kept
    verbatim; blocks for letters past ``n`` are dropped; missing letters are
    cloned from the lexically last existing block. Text without a
    FractalParts block is returned unchanged.

    Raises:
        TemplateError: FractalParts exists but holds no ``PartId`` block.
    """
    n = clamp_zone_count(n)
    span = find_block_after_keyword(text, ZONE_CONTAINER)
    if span is None:
        logger.debug("No %s block; zone count left alone", ZONE_CONTAINER)
        return text

    body = text[span.body_start : span.body_end]
    parsed = []
    for seg in split_children(body):
        letter = zone_letter_of(seg.text) if seg.is_block else None
        parsed.append((letter, seg.text))

    tagged = [(letter, t) for letter, t in parsed if letter]
    if not tagged:
        raise TemplateError(f"{ZONE_CONTAINER} block has no PartId-tagged zone blocks")

    source_letter, source_text = max(tagged, key=lambda lt: lt[0])
    wanted = zone_letters(n)

    out: list[tuple[Optional[str], str]] = []
    seen: set[str] = set()
    anchor = None
    for letter, t in parsed:
        if letter is None:
            out.append((None, t))
            continue
        if anchor is None:
            anchor = len(out)
        if letter in wanted and letter not in seen:
            out.append((letter, t))
            seen.add(letter)
        else:
            logger.debug("Dropping zone block %s", letter)

    for letter in wanted:
        if letter in seen:
            continue
        clone = relabel_zone(source_text, source_letter, letter)
        pos = _clone_position(out, letter, anchor)
        if pos > 0 and not out[pos - 1][1].endswith("\n"):
            clone = "\n" + clone.rstrip("\n")
        out.insert(pos, (letter, clone))
        seen.add(letter)

    new_body = "".join(t for _, t in out)
    return text[: span.body_start] + new_body + text[span.body_end :]


def _clone_position(out: list, letter: str, anchor: int) -> int:
    before = [i for i, (lt, _) in enumerate(out) if lt and lt < letter]
    if before:
        return before[-1] + 1
    after = [i for i, (lt, _) in enumerate(out) if lt and lt > letter]
    if after:
        return after[0]
    return anchor


def resolve_zone_count(
    requested: Optional[int], discovered_letters: Iterable[str] = ()
) -> Optional[int]:
    """Zone count to enforce, or None to keep the preset's own blocks.

    Discovered sibling letters win over an explicit request.
    """
    letters = {x.upper() for x in discovered_letters if x}
    if letters:
        return clamp_zone_count(len(letters))
    if requested is not None:
        return clamp_zone_count(requested)
    return None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


def clamp_health(value: float) -> float:
    return max(MIN_HEALTH, min(MAX_HEALTH, value))


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def apply_health(text: str, health: float, fields: Iterable[str] = ("Health", "MaxHealth", "HitPoints")) -> str:
    """Rewrite numeric health fields inside the PartId-tagged zone blocks.

    Loose lines and untagged children of FractalParts are left as they are.
    """
    span = find_block_after_keyword(text, ZONE_CONTAINER)
    if span is None:
        return text
    names = "|".join(re.escape(f) for f in fields)
    pattern = re.compile(rf"(?<![A-Za-z0-9_])((?:{names})[ \t]+)-?\d+(?:\.\d+)?")
    value = _format_number(clamp_health(health))

    parts = []
    for seg in split_children(text[span.body_start : span.body_end]):
        if seg.is_block and zone_letter_of(seg.text):
            parts.append(pattern.sub(lambda m: f"{m.group(1)}{value}", seg.text))
        else:
            parts.append(seg.text)
    return text[: span.body_start] + "".join(parts) + text[span.body_end :]


# ---------------------------------------------------------------------------
# Sibling scan: debris models and collider tags
# ---------------------------------------------------------------------------


@dataclass
class DebrisModel:
    letter: str
    number: int
    path: str
    ref: ObjectRef


@dataclass
class ZoneScan:
    """Per-zone debris models and collider tags found next to a model."""

    debris: dict[str, list[DebrisModel]] = field(default_factory=dict)
    colliders: dict[str, list[str]] = field(default_factory=dict)

    @property
    def letters(self) -> list[str]:
        return sorted(set(self.debris) | set(self.colliders))


def find_sibling(directory: Path, pattern: re.Pattern) -> Optional[Path]:
    if not directory.is_dir():
        return None
    for entry in sorted(directory.iterdir()):
        if entry.is_file() and pattern.match(entry.name):
            return entry
    return None


def collider_tags_from_names(names: Iterable[str], profile: NamingProfile) -> dict[str, list[str]]:
    """Group names carrying a collider tag by zone letter, first seen order."""
    regex = profile.collider_tag_regex()
    out: dict[str, list[str]] = {}
    for name in names:
        m = regex.search(name)
        if not m:
            continue
        tags = out.setdefault(m.group("letter").upper(), [])
        if name not in tags:
            tags.append(name)
    return out


def scan_zone_siblings(
    model_path: str | Path, profile: Optional[NamingProfile] = None
) -> ZoneScan:
    """Discover debris models and collider tags for each zone of a model.

    Debris: ``<stem>_V2_dst_ID-<L>_dbr_<n>.xob`` beside the model, sorted by
    ``n``. A debris model without a readable ``.meta`` is skipped with a
    warning. Colliders: quoted names in the ``.txo`` sidecars of the model
    and its ``_V2`` sibling that carry a zone tag (``id-<L>``, ``vis-<L>``...).
    """
    profile = profile or load_profile()
    model_path = Path(model_path)
    directory = model_path.parent
    stem = model_path.stem
    scan = ZoneScan()

    debris_re = profile.compile_for_stem(profile.zone_debris_pattern, stem)
    if directory.is_dir():
        for entry in directory.iterdir():
            m = debris_re.match(entry.name)
            if not m or not entry.is_file():
                continue
            try:
                ref = read_object_ref(entry)
            except MetadataNotFoundError:
                logger.warning("Debris model without meta, skipped: %s", entry)
                continue
            letter = m.group("letter").upper()
            scan.debris.setdefault(letter, []).append(
                DebrisModel(letter=letter, number=int(m.group("number")), path=str(entry), ref=ref)
            )
    for items in scan.debris.values():
        items.sort(key=lambda d: (d.number, d.path))

    sidecars = [model_path.with_suffix(profile.socket_sidecar_extension)]
    v2 = find_sibling(directory, profile.compile_for_stem(profile.v2_model_pattern, stem))
    if v2 is not None:
        sidecars.append(v2.with_suffix(profile.socket_sidecar_extension))

    names: list[str] = []
    for sidecar in sidecars:
        if not sidecar.is_file():
            logger.info("No sidecar at %s (no colliders from it)", sidecar)
            continue
        names.extend(parse_quoted_names(sidecar.read_text(encoding="utf-8", errors="replace")))
    scan.colliders = collider_tags_from_names(names, profile)
    return scan


def build_debris_block(debris: DebrisModel, indent: str, mass: float = 10) -> str:
    lines = [
        f'SCR_DebrisInfo "{{{ids.next_random()}}}" {{',
        f' Model "{debris.ref.field}"',
        " LocalOffset 0 0 0",
        " LocalAngles 0 0 0",
        f" Mass {_format_number(mass)}",
        "}",
    ]
    return "".join(f"{indent}{line}\n" for line in lines)


def inject_debris_and_colliders(
    text: str, scan: ZoneScan, mass: float = 10
) -> str:
    """Expand per-zone debris and collider markers.

    A ``{{DEBRIS_ID-<L>}}`` line becomes one debris block per model at the
    marker's indentation, or disappears when the zone has none.
    ``{{COLLIDERS_ID-<L>}}`` becomes ``"tag1" "tag2"`` or ``""``.
    """

    def debris_repl(m: re.Match) -> str:
        items = scan.debris.get(m.group("letter").upper(), [])
        return "".join(build_debris_block(d, m.group("indent"), mass) for d in items)

    def colliders_repl(m: re.Match) -> str:
        tags = scan.colliders.get(m.group("letter").upper(), [])
        if not tags:
            return '""'
        return " ".join(f'"{t}"' for t in tags)

    text = _RE_DEBRIS_MARKER.sub(debris_repl, text)
    return _RE_COLLIDERS_MARKER.sub(colliders_repl, text)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_destructible(
    preset: Preset,
    model_path: str | Path,
    zones: Optional[int] = None,
    health: Optional[float] = None,
    profile: Optional[NamingProfile] = None,
    progress: Optional[ProgressCallback] = None,
) -> str:
    """Render a zone-style preset for one model.

    The result keeps the preset's line endings; inserted zones and debris
    blocks use them too.

    Raises:
        FileNotFoundError: the model does not exist.
        MetadataNotFoundError / MalformedMetadataError: bad model sidecar.
        TemplateError: the preset body is structurally unusable.
    """
    profile = profile or load_profile()
    model_path = Path(model_path)
    if not model_path.is_file():
        raise FileNotFoundError(f"Invalid model path: {model_path}")

    obj = read_object_ref(model_path)
    newline = detect_newline(preset.body)
    text = to_lf(preset.body)

    scan = scan_zone_siblings(model_path, profile)
    if scan.letters:
        emit(progress, "info", f"Zones found beside model: {''.join(scan.letters)}", log=logger)

    count = resolve_zone_count(zones, scan.letters)
    if zones is not None and count is not None and scan.letters and count != clamp_zone_count(zones):
        emit(
            progress, "warn",
            f"Requested {zones} zones, using {count} discovered from sibling files",
            log=logger,
        )
    if count is not None:
        text = ensure_zone_count(text, count)

    v2_field = None
    if MARKER_V2_MODEL in text:
        v2 = find_sibling(
            model_path.parent, profile.compile_for_stem(profile.v2_model_pattern, model_path.stem)
        )
        if v2 is None:
            emit(progress, "warn", f"No V2 model beside {model_path.name}; using base model", log=logger)
        else:
            try:
                v2_field = read_object_ref(v2).field
            except MetadataNotFoundError:
                emit(progress, "warn", f"V2 model has no meta: {v2}; using base model", log=logger)

    text = substitute_markers(text, obj.field, v2_field)

    if health is not None:
        text = apply_health(text, health, profile.health_fields)

    text = inject_debris_and_colliders(text, scan, profile.default_debris_mass)
    return to_newline(text, newline)
