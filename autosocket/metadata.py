"""Readers for model and template sidecar files.

- ``.xob.meta`` / ``.et.meta``: text files whose first ``Name "..."`` field holds
  ``{GUID}relative/path``.
- ``.txo``: text dump of a model's node tree; ``$node "socket_..."`` entries
  are attachment sockets.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import MalformedMetadataError, MetadataNotFoundError

logger = logging.getLogger("autosocket.metadata")

_NAME_NEEDLE = 'Name "'
_RE_NODE = re.compile(r'\$node\s*"([^"]*)"')
_HEX = set("0123456789abcdefABCDEF")


@dataclass(frozen=True)
class ObjectRef:
    """A resource reference: GUID plus resource-relative path."""

    guid: str
    rel_path: str

    @property
    def field(self) -> str:
        """The ``{GUID}path`` form used in Object/Prefab fields."""
        return format_name(self.guid, self.rel_path)


def format_name(guid: str, path: str) -> str:
    return f"{{{guid.upper()}}}{path}"


def extract_guid(name_value: str) -> Optional[str]:
    """Return the uppercase GUID from a ``{GUID}path`` value, or None.

    The value must start (after leading whitespace) with a brace-delimited
    token of exactly 16 hex characters.
    """
    trimmed = name_value.lstrip()
    if not trimmed.startswith("{"):
        return None
    end = trimmed.find("}")
    if end == -1:
        return None
    guid = trimmed[1:end]
    if len(guid) == 16 and all(c in _HEX for c in guid):
        return guid.upper()
    return None


def parse_name_field(text: str) -> Optional[str]:
    """Return the first ``Name "..."`` value in ``text`` (trimmed), or None."""
    idx = text.find(_NAME_NEEDLE)
    if idx == -1:
        return None
    rest = text[idx + len(_NAME_NEEDLE) :]
    end = rest.find('"')
    if end == -1:
        return None
    return rest[:end].strip()


def read_name_field(meta_path: str | Path) -> Optional[str]:
    """Read the raw Name value of a sidecar; None if missing or absent."""
    meta_path = Path(meta_path)
    if not meta_path.is_file():
        return None
    text = meta_path.read_text(encoding="utf-8", errors="replace")
    return parse_name_field(text)


def read_identity(path: str | Path) -> tuple[str, str]:
    """Extract ``(GUID, relative_path)`` from a sidecar file.

    Raises:
        MetadataNotFoundError: the sidecar does not exist.
        MalformedMetadataError: no Name field, or the GUID is not 16 hex chars.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError as e:
        raise MetadataNotFoundError(f"Sidecar not found: {path}") from e

    name_value = parse_name_field(text)
    if name_value is None:
        raise MalformedMetadataError(f"Name field not found in {path}")

    guid = extract_guid(name_value)
    if guid is None:
        raise MalformedMetadataError(
            f"Name field in {path} does not start with a 16-hex-digit GUID: {name_value!r}"
        )

    close = name_value.find("}")
    return guid, name_value[close + 1 :]


def read_object_ref(model_path: str | Path) -> ObjectRef:
    """Read the ``<model>.meta`` sidecar next to a model file."""
    meta_path = Path(f"{model_path}.meta")
    guid, rel_path = read_identity(meta_path)
    return ObjectRef(guid=guid, rel_path=rel_path)


def parse_socket_names(text: str) -> list[str]:
    """Return socket node names in file order (duplicates kept)."""
    sockets = []
    for m in _RE_NODE.finditer(text):
        name = m.group(1).strip()
        if name.lower().startswith("socket_"):
            sockets.append(name)
    return sockets


def read_sockets(path: str | Path) -> list[str]:
    """Read socket names from a ``.txo`` sidecar.

    A missing sidecar means "no sockets" and is not an error.
    """
    path = Path(path)
    if not path.is_file():
        logger.info("No socket sidecar at %s (no sockets)", path)
        return []
    return parse_socket_names(path.read_text(encoding="utf-8", errors="replace"))


def parse_quoted_names(text: str) -> list[str]:
    """All double-quoted strings in a sidecar, in file order."""
    return re.findall(r'"([^"\r\n]*)"', text)
