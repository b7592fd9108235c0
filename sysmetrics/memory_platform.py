"""Memory metrics for each supported operating system.

The ``*_memory`` functions turn the raw values an operating system reports
into :class:`~sysmetrics.memory.Memory`. Their results carry no
percentages. :func:`get` collects the live values for the running system
and fills the percentages in.
"""

from __future__ import annotations

import mmap
import sys
from typing import Any, Iterable, Mapping

import psutil

from .hostfs import HostFS
from .memory import Memory, SwapMetrics, get_linux

_U32 = 1 << 32
_U64 = 1 << 64
_DARWIN_PAGE_SHIFT = 12
_SWF_ENABLE = 0x2
_DEV_BSIZE = 512


def _u64(value: int) -> int:
    return value % _U64


def _field(raw: Mapping[str, Any], key: str) -> int:
    try:
        value = raw[key]
    except KeyError:
        raise ValueError(f"missing value {key!r}") from None
    return int(value)


def darwin_memory(vm: Mapping[str, int], swap: Mapping[str, int]) -> Memory:
    """Build memory metrics from macOS values.

    ``vm`` holds ``memsize`` (bytes) and ``free_count`` and
    ``inactive_count`` (4 KiB pages). ``swap`` holds the ``total``,
    ``avail`` and ``used`` byte counts of ``vm.swapusage``.
    """
    total = _field(vm, "memsize")
    kern = _u64(_field(vm, "inactive_count") << _DARWIN_PAGE_SHIFT)
    free = _u64(_field(vm, "free_count") << _DARWIN_PAGE_SHIFT)

    mem = Memory(total=total, free=free)
    used = _u64(total - free)
    mem.used.bytes = used
    mem.actual.free = _u64(free + kern)
    mem.actual.used.bytes = _u64(used - kern)

    mem.swap = SwapMetrics(total=_field(swap, "total"), free=_field(swap, "avail"))
    mem.swap.used.bytes = _field(swap, "used")
    return mem


def freebsd_memory(vm: Mapping[str, int]) -> Memory:
    """Build memory metrics from FreeBSD ``vm.stats.vm`` counters.

    ``vm`` holds ``v_page_count``, ``v_page_size``, ``v_free_count`` and
    ``v_inactive_count``.
    """
    page_count = _field(vm, "v_page_count")
    page_size = _field(vm, "v_page_size")
    free = _u64(_field(vm, "v_free_count") * page_size)
    kern = _u64(_field(vm, "v_inactive_count") * page_size)
    total = _u64(page_count * page_size)

    mem = Memory(total=total, free=free)
    used = _u64(total - free)
    mem.used.bytes = used
    mem.actual.free = _u64(free + kern)
    mem.actual.used.bytes = _u64(used - kern)
    return mem


def _openbsd_swap(devices: Iterable[Mapping[str, int]]) -> SwapMetrics:
    entries = list(devices)
    swap = SwapMetrics()
    if not entries:
        return swap
    for entry in entries:
        if _field(entry, "flags") & _SWF_ENABLE == _SWF_ENABLE:
            blocks_per_kib = 1024 // _DEV_BSIZE
            used = _field(entry, "inuse") // blocks_per_kib
            size = _field(entry, "nblks") // blocks_per_kib
            swap.used.bytes = _u64((swap.used.bytes or 0) + used)
            swap.total = _u64((swap.total or 0) + size)
    swap.free = _u64((swap.total or 0) - (swap.used.bytes or 0))
    return swap


def openbsd_memory(
    vm: Mapping[str, int], swap: Iterable[Mapping[str, int]]
) -> Memory:
    """Build memory metrics from OpenBSD ``uvmexp`` and buffer cache values.

    ``vm`` holds ``npages``, ``free``, ``pageshift`` and ``numbufpages``.
    ``swap`` is the list of swap devices, each with ``flags``, ``nblks``
    and ``inuse`` counted in disk blocks; only enabled devices count.
    """
    npages = _field(vm, "npages")
    free_pages = _field(vm, "free")
    shift = _field(vm, "pageshift")
    buf = _u64(_field(vm, "numbufpages") << shift)

    free = _u64(free_pages << shift)
    used = _u64(((npages - free_pages) % _U32) << shift)

    mem = Memory(total=_u64(npages << shift), free=free)
    mem.used.bytes = used
    mem.actual.free = _u64(free + buf)
    mem.actual.used.bytes = _u64(used - buf)
    mem.swap = _openbsd_swap(swap)
    return mem


def aix_memory(vm: Mapping[str, int]) -> Memory:
    """Build memory metrics from AIX ``perfstat_memory_total`` values.

    ``vm`` holds ``real_total``, ``real_free`` and ``numperm`` (pages)
    and ``pagesize`` (bytes).
    """
    page_size = _field(vm, "pagesize")
    total = _u64(_field(vm, "real_total") * page_size)
    free = _u64(_field(vm, "real_free") * page_size)
    kern = _u64(_field(vm, "numperm") * page_size)

    mem = Memory(total=total, free=free)
    used = _u64(total - free)
    mem.used.bytes = used
    mem.actual.free = _u64(free + kern)
    mem.actual.used.bytes = _u64(used - kern)
    return mem


def windows_memory(vm: Mapping[str, int], swap: Mapping[str, int]) -> Memory:
    """Build memory metrics from Windows global memory status.

    ``vm`` holds ``total_phys`` and ``avail_phys``; ``swap`` holds
    ``total_page_file`` and ``avail_page_file``. The ``actual`` values
    mirror the plain ones.
    """
    total = _field(vm, "total_phys")
    free = _field(vm, "avail_phys")

    mem = Memory(total=total, free=free)
    mem.used.bytes = _u64(total - free)
    mem.actual.free = mem.free
    mem.actual.used.bytes = mem.used.bytes

    page_total = _field(swap, "total_page_file")
    page_free = _field(swap, "avail_page_file")
    mem.swap = SwapMetrics(total=page_total, free=page_free)
    mem.swap.used.bytes = _u64(page_total - page_free)
    return mem


def _collect(platform: str) -> Memory:
    vmem = psutil.virtual_memory()
    page = mmap.PAGESIZE

    if platform == "darwin":
        swp = psutil.swap_memory()
        return darwin_memory(
            {
                "memsize": vmem.total,
                "free_count": vmem.free >> _DARWIN_PAGE_SHIFT,
                "inactive_count": vmem.inactive >> _DARWIN_PAGE_SHIFT,
            },
            {"total": swp.total, "avail": swp.free, "used": swp.used},
        )
    if platform.startswith("freebsd"):
        return freebsd_memory(
            {
                "v_page_count": vmem.total // page,
                "v_page_size": page,
                "v_free_count": vmem.free // page,
                "v_inactive_count": vmem.inactive // page,
            }
        )
    if platform.startswith("openbsd"):
        swp = psutil.swap_memory()
        shift = page.bit_length() - 1
        devices = []
        if swp.total:
            devices.append(
                {
                    "flags": _SWF_ENABLE,
                    "nblks": swp.total // _DEV_BSIZE,
                    "inuse": swp.used // _DEV_BSIZE,
                }
            )
        return openbsd_memory(
            {
                "npages": vmem.total >> shift,
                "free": vmem.free >> shift,
                "pageshift": shift,
                "numbufpages": getattr(vmem, "buffers", 0) >> shift,
            },
            devices,
        )
    if platform.startswith("aix"):
        return aix_memory(
            {
                "real_total": vmem.total // page,
                "real_free": vmem.free // page,
                "numperm": max(vmem.available - vmem.free, 0) // page,
                "pagesize": page,
            }
        )
    if platform == "win32":
        swp = psutil.swap_memory()
        return windows_memory(
            {"total_phys": vmem.total, "avail_phys": vmem.available},
            {"total_page_file": swp.total, "avail_page_file": swp.free},
        )
    raise OSError(f"memory metrics are not supported on {platform}")


def get(hostfs: HostFS) -> Memory:
    """Return memory metrics for the running system, with percentages.

    On Linux the values come from ``/proc/meminfo`` under ``hostfs``;
    elsewhere ``hostfs`` is not used.
    """
    platform = sys.platform
    if platform.startswith("linux"):
        return get_linux(hostfs)
    try:
        mem = _collect(platform)
    except (psutil.Error, OSError, ValueError) as exc:
        raise OSError(f"error getting system memory info: {exc}") from exc
    mem.fill_percentages()
    return mem