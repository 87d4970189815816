"""
Per-phase timing for prefab scans (AUTOSOCKET_SCAN_TIMING=1 or ``scan --timing``).

The scanner opens one phase per step and records how many items the step
handled on the yielded stats object:

    timer = ScanTimer()
    timer.start()
    with timer.phase("walking") as stats:
        stats.items = visit_sidecars()
    timer.stop()
    logger.info(timer.report())
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field

PHASE_ORDER = ("loading", "walking", "reconciling", "persisting")


@dataclass
class PhaseStats:
    name: str
    seconds: float = 0.0
    items: int = 0

    @property
    def rate(self) -> float:
        """Items per second, 0 for an untimed or empty phase."""
        return self.items / self.seconds if self.seconds > 0 else 0.0


@dataclass
class ScanTimer:
    """Wall-clock totals for one scan plus its sidecar counters."""

    phases: dict[str, PhaseStats] = field(default_factory=dict)
    started: float = 0.0
    stopped: float = 0.0

    meta_seen: int = 0
    meta_parsed: int = 0
    removed_keys: int = 0

    def start(self):
        self.started = time.perf_counter()
        self.stopped = 0.0

    def stop(self):
        self.stopped = time.perf_counter()

    @contextmanager
    def phase(self, name: str):
        """Time one step; durations add up when a phase is re-entered."""
        stats = self.phases.setdefault(name, PhaseStats(name))
        t0 = time.perf_counter()
        try:
            yield stats
        finally:
            stats.seconds += time.perf_counter() - t0

    @property
    def total_duration(self) -> float:
        end = self.stopped or time.perf_counter()
        return end - self.started

    def _ordered(self) -> list[PhaseStats]:
        known = [self.phases[p] for p in PHASE_ORDER if p in self.phases]
        return known + [s for n, s in self.phases.items() if n not in PHASE_ORDER]

    def report(self) -> str:
        total = self.total_duration
        lines = [
            f"Prefab scan took {total:.2f}s",
            f"  sidecars seen {self.meta_seen}, parsed {self.meta_parsed}, "
            f"records removed {self.removed_keys}",
        ]
        for stats in self._ordered():
            share = stats.seconds / total * 100 if total > 0 else 0.0
            line = f"  {stats.name:<12} {stats.seconds:8.3f}s {share:5.1f}%  {stats.items} items"
            if stats.items and stats.seconds > 0:
                line += f" ({stats.rate:.0f}/s)"
            lines.append(line)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "total_duration": self.total_duration,
            "meta_seen": self.meta_seen,
            "meta_parsed": self.meta_parsed,
            "removed_keys": self.removed_keys,
            "phases": {
                s.name: {"duration": s.seconds, "items": s.items, "rate": s.rate}
                for s in self._ordered()
            },
        }
