"""CPU time samples and percentages computed between two of them."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from .rounding import round_metric

_U64 = 1 << 64
_I64_MAX = (1 << 63) - 1

# Reported counters, in the order they appear in formatted output.
_COUNTERS = ("user", "system", "idle", "nice", "irq", "iowait", "softirq", "steal")


@dataclass
class CPU:
    """CPU time counters in ticks (milliseconds of CPU time).

    Any counter may be absent (``None``) on a platform that does not
    report it.
    """

    user: Optional[int] = None
    system: Optional[int] = None
    idle: Optional[int] = None
    nice: Optional[int] = None
    irq: Optional[int] = None
    iowait: Optional[int] = None
    softirq: Optional[int] = None
    steal: Optional[int] = None

    def total(self) -> int:
        """Sum of all the counters present, as an unsigned 64-bit value."""
        values = (getattr(self, f.name) for f in fields(self))
        return sum(v for v in values if v is not None) % _U64


@dataclass(frozen=True)
class MetricOpts:
    """Selects which values appear in formatted output."""

    ticks: bool = False
    percentages: bool = False
    normalized_percentages: bool = False


@dataclass(frozen=True)
class CPUInfo:
    """Per-core details from ``/proc/cpuinfo``; unknown values stay at their zero value."""

    model_name: str = ""
    model_number: str = ""
    mhz: float = 0.0
    physical_id: int = 0
    core_id: int = 0


@dataclass
class CPUMetrics:
    """Global and per-core CPU counters from one sample."""

    totals: CPU = field(default_factory=CPU)
    cpus: List[CPU] = field(default_factory=list)
    cpu_info: List[CPUInfo] = field(default_factory=list)


def _put(target: Dict[str, Any], key: str, value: Any) -> None:
    """Store ``value`` under a dotted key, creating nested mappings."""
    *parents, last = key.split(".")
    for part in parents:
        target = target.setdefault(part, {})
    target[last] = value


def _time_delta(
    prev: Optional[int], cur: Optional[int], time_delta: int, num_cpu: int
) -> float:
    delta = ((cur or 0) - (prev or 0)) % _U64
    if delta > _I64_MAX:
        delta -= _U64
    return round_metric(delta / time_delta * num_cpu)


def _total_pct(prev: CPU, cur: CPU, time_delta: int, num_cpu: int) -> float:
    idle = _time_delta(prev.idle, cur.idle, time_delta, num_cpu)
    # I/O wait time is not counted as busy time.
    if cur.iowait is not None:
        idle += _time_delta(prev.iowait, cur.iowait, time_delta, num_cpu)
    return round_metric(num_cpu - idle)


@dataclass
class Metrics:
    """A current and a previous sample, from which usage is computed."""

    previous_sample: CPU = field(default_factory=CPU)
    current_sample: CPU = field(default_factory=CPU)
    count: int = 0
    cpu_info: CPUInfo = field(default_factory=CPUInfo)
    is_totals: bool = False

    def cpu_count(self) -> int:
        """Number of CPUs seen when the sample was taken."""
        return self.count

    def _fill_counter(
        self,
        opts: MetricOpts,
        cur: Optional[int],
        prev: Optional[int],
        time_delta: int,
        num_cpu: int,
    ) -> Dict[str, Any]:
        event: Dict[str, Any] = {}
        if opts.ticks:
            _put(event, "ticks", cur or 0)
        if opts.percentages:
            _put(event, "pct", _time_delta(prev, cur, time_delta, num_cpu))
        if opts.normalized_percentages:
            _put(event, "norm.pct", _time_delta(prev, cur, time_delta, 1))
        return event

    def format(self, opts: MetricOpts) -> Dict[str, Any]:
        """Return the nested event mapping for these samples.

        Raises :class:`ValueError` when the two samples cover no time.
        """
        prev, cur = self.previous_sample, self.current_sample
        time_delta = (cur.total() - prev.total()) % _U64
        if time_delta == 0:
            raise ValueError("previous sample is newer than current sample")
        num_cpu = self.count if self.is_totals else 1

        event: Dict[str, Any] = {}
        if opts.percentages:
            _put(event, "total.pct", _total_pct(prev, cur, time_delta, num_cpu))
        if opts.normalized_percentages:
            _put(event, "total.norm.pct", _total_pct(prev, cur, time_delta, 1))

        for name in _COUNTERS:
            current = getattr(cur, name)
            if current is not None:
                event[name] = self._fill_counter(
                    opts, current, getattr(prev, name), time_delta, num_cpu
                )

        if not self.is_totals and self.cpu_info != CPUInfo():
            info = self.cpu_info
            event["model_number"] = info.model_number
            event["model_name"] = info.model_name
            event["mhz"] = info.mhz
            event["core_id"] = info.core_id
            event["physical_id"] = info.physical_id

        return event