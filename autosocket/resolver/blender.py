"""Socket GUID hints from Blender.

Sockets exported from Blender may carry a ``ref_guid`` custom property naming
the prefab they should instance. Blender is run headless against the model's
source ``.fbx`` and prints one JSON object ``{socket_name: GUID}``.

Blender path resolution order:
1. Saved setting (``blender_path``)
2. AUTOSOCKET_BLENDER_PATH, then BLENDER_PATH
3. ``blender`` / ``blender.exe`` on PATH
4. Common Windows install locations
"""

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from ..core.config import DEBUG, get_blender_timeout

logger = logging.getLogger("autosocket.blender")

_ENV_VARS = ("AUTOSOCKET_BLENDER_PATH", "BLENDER_PATH")

_WINDOWS_CANDIDATES = (
    r"C:\Program Files\Blender Foundation\Blender\blender.exe",
    r"C:\Program Files\Blender Foundation\Blender 4.3\blender.exe",
    r"C:\Program Files\Blender Foundation\Blender 4.2\blender.exe",
    r"C:\Program Files\Blender Foundation\Blender 4.1\blender.exe",
    r"C:\Program Files\Blender Foundation\Blender 4.0\blender.exe",
)

# Runs inside Blender's Python; FBX path is passed through sys.argv after "--"
SOCKET_GUID_SCRIPT = r"""
import bpy, json, re, sys
fbx = sys.argv[sys.argv.index("--") + 1]
try:
    bpy.ops.wm.read_factory_settings(use_empty=True)
except Exception:
    pass
try:
    bpy.ops.import_scene.fbx(filepath=fbx, automatic_bone_orientation=True)
except Exception:
    print("{}")
    raise
data = {}
for ob in bpy.data.objects:
    n = ob.name or ""
    if not n.lower().startswith("socket"):
        continue
    guid = ob.get("ref_guid") or ob.get("ref guid")
    if not guid:
        for k in ob.keys():
            if str(k).lower().replace(" ", "").replace("_", "") == "refguid":
                v = ob.get(k)
                guid = v if isinstance(v, str) else None
                break
    if isinstance(guid, str):
        m = re.search(r"([0-9A-Fa-f]{16})", guid)
        guid = m.group(1).upper() if m else None
    if guid:
        data[n] = guid
print(json.dumps(data))
"""


def resolve_blender_path(configured: Optional[str] = None) -> Optional[str]:
    """Return the Blender executable path, or None if it cannot be found."""
    if configured and Path(configured).is_file():
        return str(configured)

    for var in _ENV_VARS:
        value = os.environ.get(var)
        if value and Path(value).is_file():
            return value

    for exe in ("blender.exe", "blender"):
        found = shutil.which(exe)
        if found:
            return found

    for candidate in _WINDOWS_CANDIDATES:
        if Path(candidate).is_file():
            return candidate
    return None


def parse_guid_output(stdout: str) -> Optional[dict[str, str]]:
    """Parse the last JSON-object line of Blender's stdout."""
    for line in reversed(stdout.splitlines()):
        t = line.strip()
        if t.startswith("{") and t.endswith("}"):
            try:
                data = json.loads(t)
            except json.JSONDecodeError:
                return None
            if not isinstance(data, dict):
                return None
            return {str(k): v for k, v in data.items() if isinstance(v, str)}
    return None


def extract_socket_guids(
    model_path: str | Path,
    blender_path: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Optional[dict[str, str]]:
    """Ask Blender for ``{socket_name: GUID}`` from the model's ``.fbx``.

    Returns None when the FBX or Blender is missing, Blender fails or times
    out, or its output carries no JSON object.
    """
    fbx = Path(model_path).with_suffix(".fbx")
    if not fbx.is_file():
        logger.info("Blender GUID match: FBX not found: %s", fbx)
        return None

    blender = resolve_blender_path(blender_path)
    if not blender:
        logger.info("Blender GUID match: Blender not configured (set AUTOSOCKET_BLENDER_PATH), skipping")
        return None

    cmd = [
        blender,
        "--background",
        "--factory-startup",
        "--python-expr",
        SOCKET_GUID_SCRIPT,
        "--",
        str(fbx),
    ]
    if DEBUG:
        logger.debug("Running: %s --background --factory-startup --python-expr <script> -- %s", blender, fbx)

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout if timeout is not None else get_blender_timeout(),
        )
    except subprocess.TimeoutExpired:
        logger.warning("Blender GUID match timed out for %s", fbx)
        return None
    except OSError as e:
        logger.warning("Blender GUID match could not start %s: %s", blender, e)
        return None

    if result.stderr and result.stderr.strip():
        logger.warning("Blender GUID match stderr: %s", result.stderr.strip())

    mapping = parse_guid_output(result.stdout or "")
    if mapping:
        logger.info("Blender GUID match: extracted %d ref_guid", len(mapping))
    return mapping
