# sysmetrics

`sysmetrics` samples CPU and memory usage of the host it runs on and turns
the raw counters into nested metric mappings.

On Linux and FreeBSD it reads `/proc` directly; on macOS, Windows, OpenBSD
and AIX it takes its values from `psutil`. Procfs paths can be redirected
to a mounted host root, so the package can watch a host from inside a
container.

## CPU

A `Monitor` keeps the previous sample, so every fetch after the first one
yields usage over the interval since the last fetch.

```python
from sysmetrics.cpu import MetricOpts
from sysmetrics.cpu_monitor import Monitor
from sysmetrics.hostfs import HostFS

monitor = Monitor(HostFS("/"))
monitor.fetch()                 # prime the first sample
sample = monitor.fetch()

event = sample.format(
    MetricOpts(ticks=True, percentages=True, normalized_percentages=True)
)
print(event["total"], sample.cpu_count())
```

`Metrics.format()` returns a nested mapping with an entry for each counter
the platform reports (`user`, `system`, `idle`, `nice`, `irq`, `iowait`,
`softirq`, `steal`), each holding `ticks`, `pct` and `norm.pct` as chosen by
`MetricOpts`, plus `total.pct` and `total.norm.pct`. I/O wait is not counted
as busy time in the totals. Percentages are rounded to four decimal places;
un-normalized ones scale with the number of CPUs, normalized ones lie
between 0 and 1. Formatting two samples whose counters did not advance
raises `ValueError`.

`Monitor.fetch_cores()` returns one `Metrics` object per core. On Linux each
also carries model name, model number, MHz, core id and physical id taken
from `/proc/cpuinfo`.

`Monitor` takes an optional `system=` keyword (defaulting to
`sys.platform`). On Windows, passing `with_windows_performance_counter()`
makes the global counters the sum of the per-core counters rather than the
system-wide figures; elsewhere the option has no effect.

Lower-level pieces are available on their own:

- `sysmetrics.procstat`: `parse_linux_cpu_line`, `parse_freebsd_cpu_line`,
  `scan_stat`, `scan_cpuinfo` and `read_procfs` for `/proc/stat` and
  `/proc/cpuinfo`.
- `sysmetrics.cpu_psutil`: `cpu_from_times` maps a `psutil` CPU times
  record onto a `CPU` for a given system, `sum_cpus` adds per-core counters,
  and `collect` takes a full sample.

## Memory

```python
from sysmetrics import memory_platform
from sysmetrics.hostfs import HostFS

mem = memory_platform.get(HostFS("/"))
print(mem.to_dict())
```

The result is a `Memory` object with `total`, `free`, `cached`, `used`,
`actual` (memory free or used once reclaimable caches are accounted for) and
`swap`. Each `used` section holds bytes and a rounded fraction of the total.
Values a platform does not report are left out of `to_dict()`. On Linux the
values come from `/proc/meminfo` under the given root; elsewhere the root is
not used.

`sysmetrics.memory.parse_meminfo` returns `/proc/meminfo` as a mapping of
field names to byte counts, and `memory_from_meminfo` builds a `Memory` from
such a mapping. `sysmetrics.memory_platform` also has `darwin_memory`,
`freebsd_memory`, `openbsd_memory`, `aix_memory` and `windows_memory`, which
build a `Memory` from the raw values each system reports; call
`fill_percentages()` on the result to add the percentages.

## Rounding

```python
from sysmetrics.rounding import round_metric, round_with_precision

round_metric(0.50005)               # 0.5001
round_with_precision(1.23456, 2)    # 1.23
```

## Reading a mounted host filesystem

`HostFS(root).resolve("/proc/stat")` maps an absolute path under `root`.
`docker_test_resolver()` uses the `HOSTFS` environment variable when it is
set and `/` otherwise.

## What it does not do

`sysmetrics` is a library only. It has no command-line program, does not
run as a service, does not store or send metrics anywhere, and has no
harness for running its checks inside containers.