from .entity_template import (
    CreateResult,
    build_et_meta_text,
    render_entity_template,
    resolve_save_path,
    create_entity_template,
    create_entity_template_with_meta,
)
from .destructible import (
    Preset,
    ZoneBlock,
    ZoneScan,
    parse_preset,
    load_preset,
    substitute_markers,
    ensure_zone_count,
    resolve_zone_count,
    apply_health,
    scan_zone_siblings,
    inject_debris_and_colliders,
    render_destructible,
)
from .dst_template import scan_phases, render_dst_template
from .batch import BatchResult, generate_batch

__all__ = [
    "CreateResult",
    "build_et_meta_text",
    "render_entity_template",
    "resolve_save_path",
    "create_entity_template",
    "create_entity_template_with_meta",
    "Preset",
    "ZoneBlock",
    "ZoneScan",
    "parse_preset",
    "load_preset",
    "substitute_markers",
    "ensure_zone_count",
    "resolve_zone_count",
    "apply_health",
    "scan_zone_siblings",
    "inject_debris_and_colliders",
    "render_destructible",
    "scan_phases",
    "render_dst_template",
    "BatchResult",
    "generate_batch",
]
