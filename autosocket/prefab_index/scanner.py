"""
Prefab Scanner - incremental walk of an asset tree for entity templates.

Every ``.et.meta`` sidecar under the scan root declares one template. The
scanner re-parses only sidecars whose mtime changed since the previous scan,
drops records for files that vanished, and persists the result.
"""

import logging
import os
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Optional

from ..errors import ScanRootError
from ..metadata import read_name_field
from ..naming_profile import NamingProfile, load_profile
from ..pathutil import to_resource_sep
from ..progress import ProgressCallback, emit
from .schemas import PrefabIndex, ScanPhase, ScanResult, template_key
from .store import PrefabIndexStore
from .timing import PhaseStats, ScanTimer

logger = logging.getLogger("autosocket.prefab_index")

# Progress cadence for unparsed and parsed sidecars
_WALK_REPORT_EVERY = 1000
_UPDATE_REPORT_EVERY = 200


def _canonical_root(root: str | Path) -> Path:
    p = Path(root).expanduser()
    if not p.is_dir():
        raise ScanRootError(f"Scan root is not a directory: {root}")
    try:
        return p.resolve(strict=True)
    except OSError:
        return p


class PrefabScanner:
    """Build or refresh the prefab index for one asset tree."""

    def __init__(
        self,
        store: Optional[PrefabIndexStore] = None,
        profile: Optional[NamingProfile] = None,
        timer: Optional[ScanTimer] = None,
    ):
        self.store = store or PrefabIndexStore()
        self.profile = profile or load_profile()
        self.timer = timer
        self.phase = ScanPhase.IDLE

    def _timed(self, name: str):
        """Timer phase, or a throwaway stats object when timing is off."""
        if self.timer:
            return self.timer.phase(name)
        return nullcontext(PhaseStats(name))

    def _set_phase(self, phase: ScanPhase, progress: Optional[ProgressCallback]):
        self.phase = phase
        emit(progress, "debug", f"Scan phase: {phase.value}", log=logger)

    def _iter_sidecars(self, root: Path):
        """Yield template sidecar paths, pruning excluded directories."""
        suffix = self.profile.template_meta_suffix.lower()
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            dirnames[:] = [d for d in dirnames if not self.profile.is_excluded_dir(d)]
            for name in filenames:
                if name.lower().endswith(suffix):
                    yield os.path.join(dirpath, name)

    def scan(
        self,
        root: str | Path,
        verbose: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> ScanResult:
        """Scan ``root`` and persist the refreshed index.

        Args:
            root: Asset tree root (usually the checkout root).
            verbose: Report every updated record instead of periodic counts.
            progress: Optional observer ``(level, message, current, total)``.

        Raises:
            ScanRootError: ``root`` is missing or not a directory.
        """
        timer = self.timer
        if timer:
            timer.start()

        canonical = _canonical_root(root)
        canonical_str = str(canonical)
        emit(progress, "info", f"Scan root: {canonical_str}", log=logger)
        emit(progress, "info", "Scanning for template sidecars...", log=logger)

        index = self._load_previous(canonical_str, progress)
        rebuilt = not index.name_index and not index.meta_mtime
        if index.svn_root and index.svn_root != canonical_str:
            emit(progress, "info", "Cached root differs; rebuilding indices", log=logger)
            index.clear()
            rebuilt = True
        index.svn_root = canonical_str

        self._set_phase(ScanPhase.WALKING, progress)
        present_keys: set[str] = set()
        present_et_paths: set[str] = set()
        touched = 0
        updated = 0

        with self._timed("walking") as walk_stats:
            for meta_str in self._iter_sidecars(canonical):
                touched += 1
                et_str = meta_str[: -len(".meta")]
                key = template_key(et_str)
                present_keys.add(key)
                present_et_paths.add(et_str)

                try:
                    mtime = os.stat(meta_str).st_mtime
                except OSError:
                    mtime = 0.0
                prev = index.meta_mtime.get(meta_str, -1.0)

                if abs(mtime - prev) < sys.float_info.epsilon:
                    index.et_path_index.setdefault(key, et_str)
                else:
                    rel_path = to_resource_sep(os.path.relpath(et_str, canonical_str))
                    name_value = read_name_field(meta_str) or rel_path
                    index.upsert(key, et_str, name_value)
                    index.meta_mtime[meta_str] = mtime
                    updated += 1

                    if verbose:
                        emit(progress, "debug", f"Updated {key} -> {name_value}", log=logger)
                    elif updated == 1 or updated % _UPDATE_REPORT_EVERY == 0:
                        emit(progress, "info", f"Indexing changes... {updated}", log=logger)

                if touched == 1 or touched % _WALK_REPORT_EVERY == 0:
                    emit(
                        progress, "info", f"Scanning... {touched} meta",
                        current=touched, total=touched + 1, log=logger,
                    )
            walk_stats.items = touched

        self._set_phase(ScanPhase.RECONCILING, progress)
        with self._timed("reconciling") as recon_stats:
            recon_stats.items = len(index)
            removed = index.prune(present_keys, present_et_paths)

        emit(
            progress, "info",
            f"Scan summary: meta_seen={touched}, updated={updated}, removed_keys={removed}",
            log=logger,
        )
        emit(progress, "info", f"Writing cache: {self.store.location}", log=logger)

        with self._timed("persisting") as persist_stats:
            self.store.save(index)
            persist_stats.items = len(index)
        self._set_phase(ScanPhase.PERSISTED, progress)

        if timer:
            timer.meta_seen += touched
            timer.meta_parsed += updated
            timer.removed_keys += removed
            timer.stop()

        emit(
            progress, "info", f"Prefab index ready: {len(index)} entries",
            current=touched, total=touched, log=logger,
        )
        self.phase = ScanPhase.IDLE
        return ScanResult(
            entry_count=len(index),
            cache_path=self.store.location,
            meta_seen=touched,
            updated=updated,
            removed_keys=removed,
            rebuilt=rebuilt,
        )

    def _load_previous(self, canonical_str: str, progress) -> PrefabIndex:
        with self._timed("loading") as load_stats:
            index = self.store.load()
            load_stats.items = len(index)
        if index.name_index and index.svn_root == canonical_str:
            emit(
                progress, "info",
                f"Incremental scan: loaded cache (entries={len(index)})",
                log=logger,
            )
        return index
