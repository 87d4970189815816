from .sockets import (
    TIER_HINT,
    TIER_GUID,
    TIER_NAME,
    normalize_socket_key,
    normalize_hints,
    extract_guid_from_socket_name,
    prefab_candidates_from_socket,
    resolve,
    resolve_path,
    SocketMatch,
    MatchReport,
    SocketResolver,
)
from .blender import resolve_blender_path, extract_socket_guids

__all__ = [
    "TIER_HINT",
    "TIER_GUID",
    "TIER_NAME",
    "normalize_socket_key",
    "normalize_hints",
    "extract_guid_from_socket_name",
    "prefab_candidates_from_socket",
    "resolve",
    "resolve_path",
    "SocketMatch",
    "MatchReport",
    "SocketResolver",
    "resolve_blender_path",
    "extract_socket_guids",
]
