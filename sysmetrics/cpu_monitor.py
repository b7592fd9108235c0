"""Tracking of CPU usage between successive samples."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, List, Optional

from .cpu import CPU, CPUInfo, CPUMetrics, Metrics
from .cpu_psutil import collect
from .hostfs import HostFS
from .procstat import parse_freebsd_cpu_line, parse_linux_cpu_line, read_procfs


@dataclass
class _Options:
    use_performance_counter: bool = False


Option = Callable[[_Options], None]


def with_windows_performance_counter() -> Option:
    """Option that sums per-core counters for the totals; only effective on Windows."""

    def apply(options: _Options) -> None:
        options.use_performance_counter = True

    return apply


class Monitor:
    """Keeps the last CPU sample so that usage over time can be computed.

    ``hostfs`` is only used where counters come from procfs (Linux and
    FreeBSD). ``system`` defaults to the running platform.
    """

    def __init__(
        self,
        hostfs: Optional[HostFS] = None,
        *options: Option,
        system: Optional[str] = None,
    ) -> None:
        opts = _Options()
        for option in options:
            option(opts)
        self.hostfs = hostfs if hostfs is not None else HostFS()
        self.system = system or sys.platform
        self.use_performance_counter = (
            opts.use_performance_counter and self.system.startswith("win")
        )
        self.last_sample = CPUMetrics()

    def _sample(self) -> CPUMetrics:
        try:
            return get(self)
        except OSError as exc:
            raise OSError(f"error fetching CPU metrics: {exc}") from exc
        except ValueError as exc:
            raise ValueError(f"error fetching CPU metrics: {exc}") from exc

    def fetch(self) -> Metrics:
        """Take a new sample of the global counters, replacing the stored one."""
        sample = self._sample()
        previous = self.last_sample
        self.last_sample = sample
        return Metrics(
            previous_sample=previous.totals,
            current_sample=sample.totals,
            count=len(sample.cpus),
            is_totals=True,
        )

    def fetch_cores(self) -> List[Metrics]:
        """Take a new sample of the per-core counters, replacing the stored one."""
        sample = self._sample()
        previous_cores = self.last_sample.cpus
        cores: List[Metrics] = []
        for index, current in enumerate(sample.cpus):
            # The number of CPUs can change between samples.
            previous = previous_cores[index] if index < len(previous_cores) else CPU()
            info = (
                sample.cpu_info[index]
                if index < len(sample.cpu_info)
                else CPUInfo()
            )
            cores.append(
                Metrics(
                    previous_sample=previous,
                    current_sample=current,
                    cpu_info=info,
                    is_totals=False,
                )
            )
        self.last_sample = sample
        return cores


def get(monitor: Monitor) -> CPUMetrics:
    """Read the current CPU counters for the monitor's system."""
    system = monitor.system
    if system.startswith("linux"):
        return read_procfs(monitor.hostfs, parse_linux_cpu_line)
    if system.startswith("freebsd"):
        return read_procfs(monitor.hostfs, parse_freebsd_cpu_line)
    return collect(system, sum_per_cpu=monitor.use_performance_counter)