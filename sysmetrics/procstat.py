"""Parsing of ``/proc/stat`` and ``/proc/cpuinfo`` on Linux and FreeBSD."""

from __future__ import annotations

import re
from typing import Callable, Iterable, Iterator, List, Sequence, TextIO, Tuple

from .cpu import CPU, CPUInfo, CPUMetrics
from .hostfs import HostFS

_U64 = 1 << 64
_UINT_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"[+-]?[0-9]+")

LineReader = Callable[[str], CPU]

_LINUX_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("user", "user"),
    ("nice", "nice"),
    ("sys", "system"),
    ("idle", "idle"),
    ("wait", "iowait"),
    ("irq", "irq"),
    ("softirq", "softirq"),
    ("stolen", "steal"),
)

_FREEBSD_FIELDS: Tuple[Tuple[str, str], ...] = _LINUX_FIELDS[:4]


def _touint(text: str) -> int:
    if not _UINT_RE.fullmatch(text):
        raise ValueError(text)
    value = int(text)
    if value >= _U64:
        raise ValueError(text)
    return value


def _parse_line(line: str, layout: Sequence[Tuple[str, str]]) -> CPU:
    columns = line.split()
    if len(columns) <= len(layout):
        raise ValueError(f"not enough fields in CPU line: {line!r}")
    values = {}
    errors: List[str] = []
    for (label, attr), text in zip(layout, columns[1:]):
        try:
            values[attr] = _touint(text)
        except ValueError:
            errors.append(f"failed to parse {label}: {text}")
    if errors:
        raise ValueError("\n".join(errors))
    return CPU(**values)


def parse_linux_cpu_line(line: str) -> CPU:
    """Parse a Linux ``cpu`` line of ``/proc/stat``."""
    return _parse_line(line, _LINUX_FIELDS)


def parse_freebsd_cpu_line(line: str) -> CPU:
    """Parse a FreeBSD (linprocfs) ``cpu`` line of ``/proc/stat``."""
    return _parse_line(line, _FREEBSD_FIELDS)


def _is_global_line(line: str) -> bool:
    return len(line) > 4 and line.startswith("cpu ")


def _is_core_line(line: str) -> bool:
    return len(line) > 3 and line.startswith("cpu") and line[3] != " "


def scan_stat(lines: Iterable[str], line_reader: LineReader) -> CPUMetrics:
    """Collect the global and per-core CPU lines of a stat file."""
    metrics = CPUMetrics()
    for line in lines:
        if _is_global_line(line):
            try:
                metrics.totals = line_reader(line)
            except ValueError as exc:
                raise ValueError(f"error parsing global CPU line: {exc}") from exc
        if _is_core_line(line):
            try:
                metrics.cpus.append(line_reader(line))
            except ValueError as exc:
                raise ValueError(f"error parsing CPU line: {exc}") from exc
    return metrics


def _parse_int(text: str, what: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"parsing {what}: invalid syntax: {text!r}")
    return int(text)


def _parse_float(text: str, what: str) -> float:
    try:
        if "_" in text:
            raise ValueError(text)
        return float(text)
    except ValueError:
        raise ValueError(f"parsing {what}: invalid syntax: {text!r}") from None


def scan_cpuinfo(lines: Iterable[str]) -> List[CPUInfo]:
    """Parse cpuinfo lines; each block ends at a line that is not ``key: value``."""
    infos: List[CPUInfo] = []
    current: dict = {}
    core = 0
    for line in lines:
        parts = line.split(":")
        if len(parts) != 2:
            infos.append(CPUInfo(**current))
            current = {}
            core += 1
            continue
        key, value = parts[0].strip(), parts[1].strip()
        if key == "model":
            current["model_number"] = value
        elif key == "model name":
            current["model_name"] = value
        elif key == "physical id":
            current["physical_id"] = _parse_int(value, "physical ID")
        elif key == "core id":
            current["core_id"] = _parse_int(value, "core ID")
        elif key == "cpu MHz":
            current["mhz"] = _parse_float(value, f"CPU {core} Mhz")
    return infos


def _lines(fh: TextIO) -> Iterator[str]:
    for raw in fh:
        line = raw[:-1] if raw.endswith("\n") else raw
        yield line[:-1] if line.endswith("\r") else line


def read_procfs(hostfs: HostFS, line_reader: LineReader) -> CPUMetrics:
    """Read CPU counters and per-core details from procfs under ``hostfs``."""
    stat_path = hostfs.resolve("/proc/stat")
    try:
        with open(stat_path, encoding="utf-8", errors="replace", newline="") as fh:
            try:
                metrics = scan_stat(_lines(fh), line_reader)
            except ValueError as exc:
                raise ValueError(f"scanning stat file: {exc}") from exc
    except OSError as exc:
        raise OSError(f"error opening file {stat_path}: {exc}") from exc

    info_path = hostfs.resolve("/proc/cpuinfo")
    try:
        with open(info_path, encoding="utf-8", errors="replace", newline="") as fh:
            metrics.cpu_info = scan_cpuinfo(_lines(fh))
    except OSError as exc:
        raise OSError(f"opening '{info_path}': {exc}") from exc
    return metrics