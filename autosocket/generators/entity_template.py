"""
Entity template generation from an imported model.

Given ``Model.xob`` (with ``Model.xob.meta`` and optionally ``Model.txo``),
writes ``Model_test_prefab.et``:

    GenericEntity {
     ID "<id>"
     components {
      MeshObject "{<id>}" {
       Object "{GUID}Assets/.../Model.xob"
      }
      WB_SlotBoneMappingsComponent "{<id>}" { ... }   # when sockets resolved
     }
     coords 0 0 0
     { <child entities, grouped by prefab> }          # when sockets resolved
    }
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .. import ids
from ..metadata import format_name, read_object_ref, read_sockets
from ..naming_profile import NamingProfile, load_profile
from ..pathutil import rel_from_known_roots
from ..prefab_index.schemas import PrefabIndex
from ..prefab_index.store import PrefabIndexStore
from ..progress import ProgressCallback, emit
from ..resolver.sockets import SocketResolver
from .text_edit import insert_after_line, insert_before_anchor, remove_blank_lines

logger = logging.getLogger("autosocket.entity_template")

COMPONENTS_ANCHOR = " components {"
COMPONENTS_CLOSE_ANCHOR = "}\n coords"
COORDS_LINE = "coords 0 0 0"
OUTPUT_SUFFIX = "_test_prefab.et"

META_CONFIGURATIONS = (
    "PC",
    "XBOX_ONE : PC",
    "XBOX_SERIES : PC",
    "PS4 : PC",
    "PS5 : PC",
    "HEADLESS : PC",
)


@dataclass
class CreateResult:
    et_path: str
    meta_path: Optional[str] = None
    sockets: int = 0
    matched: int = 0
    unmatched: int = 0
    suggested_extra_dirs: list[str] = field(default_factory=list)
    mappings: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        out = {
            "et_path": self.et_path,
            "sockets": self.sockets,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "suggested_extra_dirs": list(self.suggested_extra_dirs),
        }
        if self.meta_path:
            out["meta_path"] = self.meta_path
        return out


# ---------------------------------------------------------------------------
# Text builders
# ---------------------------------------------------------------------------


def build_root_text(entity_id: str, object_field: str) -> str:
    mesh_guid = ids.next_sequential()
    return (
        "GenericEntity {\n"
        f' ID "{entity_id}"\n'
        " components {\n"
        f'  MeshObject "{{{mesh_guid}}}" {{\n'
        f'   Object "{object_field}"\n'
        "  }\n"
        " }\n"
        " coords 0 0 0\n"
        "}\n"
    )


def build_slot_component(mappings: list[tuple[str, str]]) -> Optional[str]:
    """Slot/bone mapping component, one entry per (socket, prefab) pair."""
    if not mappings:
        return None
    lines = [
        f'  WB_SlotBoneMappingsComponent "{{{ids.next_sequential()}}}" {{',
        "   SlotBoneMappings {",
    ]
    for bone_prefix, prefab in mappings:
        lines.append(f'    SlotBoneMappingObject "{{{ids.next_sequential()}}}" {{')
        lines.append(f'     BonePrefix "{bone_prefix}"')
        lines.append(f'     Prefab "{prefab}"')
        lines.append("    }")
    lines.append("   }")
    lines.append("  }")
    return "\n".join(lines) + "\n"


def _hierarchy_lines(indent: str, hier_guid: str, socket: str) -> list[str]:
    return [
        f"{indent}components {{",
        f'{indent} Hierarchy "{{{hier_guid}}}" {{',
        f"{indent}  Enabled 1",
        f'{indent}  PivotID "{socket}"',
        f"{indent}  AutoTransform 1",
        f"{indent} }}",
        f"{indent}}}",
        f"{indent}coords 0 0 0",
    ]


def group_by_prefab(mappings: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """prefab -> sockets (file order), keyed in sorted prefab order."""
    grouped: dict[str, list[str]] = {}
    for socket, prefab in mappings:
        grouped.setdefault(prefab, []).append(socket)
    return dict(sorted(grouped.items()))


def build_child_entities_block(
    mappings: list[tuple[str, str]], hier_guid: str
) -> Optional[str]:
    """Child entity declarations, one group per resolved prefab.

    A prefab used by two or more sockets becomes one ``$grp`` declaration
    with an instance per socket; a prefab used once is a plain child.
    """
    if not mappings:
        return None
    lines = [" {"]
    for prefab, sockets in group_by_prefab(mappings).items():
        if len(sockets) >= 2:
            lines.append(f'  $grp GenericEntity : "{prefab}" {{')
            for socket in sockets:
                lines.append("   {")
                lines.append(f'    ID "{ids.next_sequential()}"')
                lines.extend(_hierarchy_lines("    ", hier_guid, socket))
                lines.append("   }")
            lines.append("  }")
        else:
            lines.append(f'  GenericEntity : "{prefab}" {{')
            lines.append(f'   ID "{ids.next_sequential()}"')
            lines.extend(_hierarchy_lines("   ", hier_guid, sockets[0]))
            lines.append("  }")
    lines.append(" }")
    return "\n".join(lines) + "\n"


def render_entity_template(object_field: str, mappings: list[tuple[str, str]]) -> str:
    """Full template text for a model and its resolved socket mappings."""
    text = build_root_text(ids.next_sequential(), object_field)
    component = build_slot_component(mappings)
    if component:
        text = insert_before_anchor(text, COMPONENTS_ANCHOR, COMPONENTS_CLOSE_ANCHOR, component)
    # One hierarchy component GUID is shared by every child of this file
    children = build_child_entities_block(mappings, ids.next_sequential())
    if children:
        text = insert_after_line(text, COORDS_LINE, children)
    return remove_blank_lines(text)


def build_et_meta_text(name_value: str) -> str:
    lines = ["MetaFileClass {", f' Name "{name_value}"', " Configurations {"]
    for config in META_CONFIGURATIONS:
        lines.append(f"  EntityTemplateResourceClass {config} {{")
        lines.append("  }")
    lines.append(" }")
    lines.append("}")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# File generation
# ---------------------------------------------------------------------------


def resolve_save_path(model_path: str | Path, save_dir: Optional[str] = None) -> Path:
    """``<save_dir or model dir>/<stem>_test_prefab.et``.

    ``save_dir`` is only used when it is an existing directory.
    """
    model_path = Path(model_path)
    if not model_path.stem:
        raise ValueError(f"Invalid model file name: {model_path}")
    directory = model_path.parent
    if save_dir and Path(save_dir).is_dir():
        directory = Path(save_dir)
    return directory / f"{model_path.stem}{OUTPUT_SUFFIX}"


def create_entity_template(
    model_path: str | Path,
    index: PrefabIndex,
    save_dir: Optional[str] = None,
    hints: Optional[Mapping[str, str]] = None,
    svn_root: Optional[str] = None,
    profile: Optional[NamingProfile] = None,
    progress: Optional[ProgressCallback] = None,
) -> CreateResult:
    """Write a test prefab for ``model_path`` with its sockets attached.

    Args:
        model_path: The ``.xob`` model. Its ``.meta`` sidecar must exist.
        index: Prefab index the sockets are resolved against.
        save_dir: Output directory; ignored unless it is an existing directory.
        hints: Optional external ``{socket_name: GUID}`` map (e.g. from Blender).
        svn_root: Checkout root; prefab folders under it are not suggested.

    Raises:
        FileNotFoundError: the model file does not exist.
        MetadataNotFoundError / MalformedMetadataError: bad model sidecar.
    """
    profile = profile or load_profile()
    model_path = Path(model_path)
    if not model_path.is_file():
        emit(progress, "error", f"Invalid model path: {model_path}", log=logger)
        raise FileNotFoundError(f"Invalid model path: {model_path}")

    emit(progress, "info", f"Processing model: {model_path}", log=logger)
    obj = read_object_ref(model_path)
    emit(progress, "info", "Loaded model meta Name/GUID", log=logger)

    sockets = read_sockets(model_path.with_suffix(profile.socket_sidecar_extension))
    emit(progress, "info", f"Found {len(sockets)} sockets", log=logger)
    emit(
        progress,
        "info",
        f"Loaded prefab cache (names={len(index.name_index)}, guids={len(index.guid_index)})",
        log=logger,
    )

    resolver = SocketResolver(index, hints=hints)
    report = resolver.match(sockets)
    emit(
        progress, "info", f"Matched sockets: {report.matched}/{report.total}",
        current=report.total, total=report.total, log=logger,
    )

    suggested = resolver.suggest_source_directories(
        [s for s, _ in report.mappings], svn_root=svn_root
    )
    if suggested:
        emit(progress, "info", f"Prefab folders in use: {len(suggested)}", log=logger)

    out_path = resolve_save_path(model_path, save_dir)
    text = render_entity_template(obj.field, report.mappings)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    emit(progress, "info", f"Writing template: {out_path}", log=logger)
    out_path.write_text(text, encoding="utf-8", newline="\n")

    return CreateResult(
        et_path=str(out_path),
        sockets=report.total,
        matched=report.matched,
        unmatched=report.unmatched,
        suggested_extra_dirs=suggested,
        mappings=list(report.mappings),
    )


def create_entity_template_with_meta(
    model_path: str | Path,
    index: PrefabIndex,
    store: Optional[PrefabIndexStore] = None,
    progress: Optional[ProgressCallback] = None,
    **kwargs,
) -> CreateResult:
    """``create_entity_template`` plus a ``.et.meta`` sidecar and cache registration.

    A failed cache registration is logged; the written files stay in place.
    """
    profile = kwargs.get("profile") or load_profile()
    result = create_entity_template(model_path, index, progress=progress, **kwargs)

    et_path = Path(result.et_path)
    rel = rel_from_known_roots(et_path, profile.root_anchors)
    name_value = format_name(ids.next_random(), rel)
    meta_path = Path(f"{et_path}.meta")
    emit(progress, "info", f"Writing template meta: {meta_path}", log=logger)
    meta_path.write_text(build_et_meta_text(name_value), encoding="utf-8", newline="\n")
    result.meta_path = str(meta_path)

    store = store or PrefabIndexStore()
    try:
        store.register(et_path, meta_path, name_value)
    except (OSError, ValueError) as e:
        emit(progress, "warn", f"Failed to update prefab cache: {e}", log=logger)
    else:
        emit(progress, "info", "Updated prefab cache", log=logger)
    return result
