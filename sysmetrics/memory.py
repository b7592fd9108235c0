"""System memory metrics and parsing of ``/proc/meminfo``."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .hostfs import HostFS
from .rounding import round_metric

_U64 = 1 << 64
_UINT_RE = re.compile(r"[0-9]+")


def _sub_u64(a: int, b: int) -> int:
    """Unsigned 64-bit subtraction, wrapping on underflow."""
    return (a - b) % _U64


def _compact(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop absent values and empty sub-mappings."""
    return {k: v for k, v in mapping.items() if v is not None and v != {}}


@dataclass
class UsedMemStats:
    """The ``used.*`` memory values."""

    pct: Optional[float] = None
    bytes: Optional[int] = None

    def is_zero(self) -> bool:
        return self.pct is None and self.bytes is None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"pct": self.pct, "bytes": self.bytes})


@dataclass
class ActualMemoryMetrics:
    """The ``actual.*`` memory values."""

    free: Optional[int] = None
    used: UsedMemStats = field(default_factory=UsedMemStats)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"free": self.free, "used": self.used.to_dict()})


@dataclass
class SwapMetrics:
    """The ``swap.*`` memory values."""

    total: Optional[int] = None
    used: UsedMemStats = field(default_factory=UsedMemStats)
    free: Optional[int] = None

    def is_zero(self) -> bool:
        return self.free is None and self.used.is_zero() and self.total is None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {"total": self.total, "used": self.used.to_dict(), "free": self.free}
        )


@dataclass
class Memory:
    """Memory usage; any value may be absent on a given platform."""

    total: Optional[int] = None
    used: UsedMemStats = field(default_factory=UsedMemStats)
    free: Optional[int] = None
    cached: Optional[int] = None
    actual: ActualMemoryMetrics = field(default_factory=ActualMemoryMetrics)
    swap: SwapMetrics = field(default_factory=SwapMetrics)

    def fill_percentages(self) -> None:
        """Compute the used percentages from the byte counts."""
        if self.total:
            self.used.pct = round_metric((self.used.bytes or 0) / self.total)
            self.actual.used.pct = round_metric(
                (self.actual.used.bytes or 0) / self.total
            )
        if self.swap.total and self.swap.used.bytes is not None:
            self.swap.used.pct = round_metric(self.swap.used.bytes / self.swap.total)

    def to_dict(self) -> Dict[str, Any]:
        """Nested mapping of the values present, omitting absent ones."""
        return _compact(
            {
                "total": self.total,
                "used": self.used.to_dict(),
                "free": self.free,
                "cached": self.cached,
                "actual": self.actual.to_dict(),
                "swap": self.swap.to_dict(),
            }
        )


def parse_meminfo(hostfs: HostFS) -> Dict[str, int]:
    """Parse ``/proc/meminfo`` under ``hostfs`` into a name-to-bytes table.

    Lines that cannot be parsed are skipped; ``kB`` values are converted
    to bytes.
    """
    path = hostfs.resolve("/proc/meminfo")
    try:
        with open(path, "rb") as fh:
            contents = fh.read().decode("utf-8", errors="replace")
    except OSError as exc:
        raise OSError(f"error reading file {path}: {exc}") from exc

    table: Dict[str, int] = {}
    for line in contents.splitlines():
        fields = line.split(":")
        if len(fields) != 2:
            continue
        name, rest = fields
        value_unit = rest.split()
        if not value_unit or not _UINT_RE.fullmatch(value_unit[0]):
            continue
        value = int(value_unit[0])
        if value >= _U64:
            continue
        if len(value_unit) > 1 and value_unit[1] == "kB":
            value = (value * 1024) % _U64
        table[name] = value
    return table


def memory_from_meminfo(table: Mapping[str, int]) -> Memory:
    """Build memory metrics from a parsed meminfo table (no percentages)."""
    mem = Memory()
    mem.total = table.get("MemTotal")
    mem.free = table.get("MemFree")
    mem.cached = table.get("Cached")

    free = mem.free or 0
    cached = mem.cached or 0
    buffers = table.get("Buffers", 0)

    available = table.get("MemAvailable")
    if available is not None:
        mem.actual.free = available
    else:
        mem.actual.free = (free + buffers + cached) % _U64

    total = mem.total or 0
    mem.used.bytes = _sub_u64(total, free)
    mem.actual.used.bytes = _sub_u64(total, mem.actual.free)

    swap_total = table.get("SwapTotal")
    swap_free = table.get("SwapFree")
    mem.swap.total = swap_total
    mem.swap.free = swap_free
    if swap_total is not None and swap_free is not None:
        mem.swap.used.bytes = _sub_u64(swap_total, swap_free)
    return mem


def get_linux(hostfs: HostFS) -> Memory:
    """Read memory metrics from procfs, with percentages filled in."""
    try:
        table = parse_meminfo(hostfs)
    except OSError as exc:
        raise OSError(f"error getting system memory info: {exc}") from exc
    mem = memory_from_meminfo(table)
    mem.fill_percentages()
    return mem