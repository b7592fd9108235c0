"""CPU counters for systems without procfs, read through psutil.

macOS, Windows, OpenBSD and AIX report different sets of CPU time
counters. :func:`cpu_from_times` maps one psutil ``cpu_times`` record
onto :class:`~sysmetrics.cpu.CPU` for a given system, and :func:`collect`
takes a full sample of the global and per-core counters.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, fields
from typing import Any, Iterable, Optional, Tuple

import psutil

from .cpu import CPU, CPUMetrics

_U64 = 1 << 64
_NS_PER_SECOND = 1_000_000_000
_NS_PER_MILLISECOND = 1_000_000


@dataclass(frozen=True)
class _Layout:
    """How one system's CPU time record maps onto counters."""

    ns_per_unit: int
    columns: Tuple[Tuple[str, str], ...]  # (CPU attribute, psutil attribute)


# macOS counters are reported in whole seconds, the others in milliseconds.
_DARWIN = _Layout(
    _NS_PER_SECOND,
    (("system", "system"), ("user", "user"), ("idle", "idle"), ("nice", "nice")),
)
_WINDOWS = _Layout(
    _NS_PER_MILLISECOND,
    (("idle", "idle"), ("system", "system"), ("user", "user")),
)
_OPENBSD = _Layout(
    _NS_PER_MILLISECOND,
    (
        ("user", "user"),
        ("nice", "nice"),
        ("system", "system"),
        ("irq", "irq"),
        ("idle", "idle"),
    ),
)
_AIX = _Layout(
    _NS_PER_MILLISECOND,
    (("user", "user"), ("system", "system"), ("idle", "idle"), ("iowait", "iowait")),
)


def _layout(system: str) -> _Layout:
    if system == "darwin":
        return _DARWIN
    if system.startswith("win"):
        return _WINDOWS
    if system.startswith("openbsd"):
        return _OPENBSD
    if system.startswith("aix"):
        return _AIX
    raise ValueError(f"CPU times are not supported on {system}")


def _convert(value: float, ns_per_unit: int, name: str) -> int:
    if value < 0:
        raise ValueError(f"negative CPU time {name!r}: {value}")
    nanoseconds = round(value * _NS_PER_SECOND)
    return (nanoseconds // ns_per_unit) % _U64


def cpu_from_times(times: Any, system: str) -> CPU:
    """Convert a psutil CPU times record (in seconds) into counters.

    Only the counters ``system`` reports are set; the rest stay absent.
    Raises :class:`ValueError` for an unsupported system or a record that
    lacks a counter the system is expected to report.
    """
    layout = _layout(system)
    values = {}
    for attr, source in layout.columns:
        raw = getattr(times, source, None)
        if raw is None:
            raise ValueError(f"missing CPU time {source!r}")
        values[attr] = _convert(float(raw), layout.ns_per_unit, source)
    return CPU(**values)


def sum_cpus(cpus: Iterable[CPU]) -> CPU:
    """Add per-core counters into one total; counters absent everywhere stay absent."""
    cores = list(cpus)
    totals = {}
    for f in fields(CPU):
        present = [v for v in (getattr(c, f.name) for c in cores) if v is not None]
        if present:
            totals[f.name] = sum(present) % _U64
    return CPU(**totals)


def collect(system: Optional[str] = None, sum_per_cpu: bool = False) -> CPUMetrics:
    """Take a sample of global and per-core CPU counters.

    ``system`` defaults to the running platform. With ``sum_per_cpu`` the
    global counters are the sum of the per-core ones instead of the
    system-wide figures.
    """
    system = system or sys.platform
    _layout(system)
    try:
        summary = psutil.cpu_times(percpu=False)
    except (psutil.Error, OSError) as exc:
        raise OSError(f"error fetching CPU summary data: {exc}") from exc
    try:
        per_cpu = psutil.cpu_times(percpu=True)
    except (psutil.Error, OSError) as exc:
        raise OSError(f"error fetching per-CPU data: {exc}") from exc

    cpus = [cpu_from_times(times, system) for times in per_cpu]
    totals = sum_cpus(cpus) if sum_per_cpu else cpu_from_times(summary, system)
    return CPUMetrics(totals=totals, cpus=cpus)