import pytest

from sysmetrics.hostfs import HostFS
from sysmetrics.memory import (
    ActualMemoryMetrics,
    Memory,
    SwapMetrics,
    UsedMemStats,
    get_linux,
    memory_from_meminfo,
    parse_meminfo,
)

OLDKERN_MEMINFO = """\
MemTotal:       61641404 kB
MemFree:        25069559 kB
Buffers:            4625 kB
Cached:         26667096 kB
SwapCached:            0 kB
Active:         20000000 kB
SwapTotal:       8388604 kB
SwapFree:        8388604 kB
HugePages_Total:       0
Garbage line without separator
"""


@pytest.fixture
def oldkern(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "meminfo").write_text(OLDKERN_MEMINFO)
    return HostFS(str(tmp_path))


def test_mem_percentage():
    m = Memory(total=7, used=UsedMemStats(bytes=5), free=2)
    m.fill_percentages()
    assert m.used.pct == 0.7143

    m = Memory(total=0)
    m.fill_percentages()
    assert (m.used.pct or 0.0) == 0.0


def test_actual_mem_percentage():
    m = Memory(
        total=7,
        actual=ActualMemoryMetrics(used=UsedMemStats(bytes=5), free=2),
    )
    m.fill_percentages()
    assert m.actual.used.pct == 0.7143


def test_meminfo_parse(oldkern):
    mem = get_linux(oldkern)
    assert mem.cached == 27307106304
    assert mem.actual.free == 52983070720
    assert mem.actual.used.bytes == 10137726976


def test_meminfo_pct(oldkern):
    mem = get_linux(oldkern)
    assert mem.actual.used.pct == 0.1606
    assert mem.used.pct == 0.5933


def test_get_memory_values_present(oldkern):
    mem = get_linux(oldkern)
    assert mem.total > 0
    assert mem.used.bytes > 0
    assert mem.free >= 0
    assert mem.actual.free >= 0
    assert mem.actual.used.bytes > 0
    assert mem.used.bytes + mem.free == mem.total


def test_get_swap(oldkern):
    mem = get_linux(oldkern)
    assert mem.swap.total == 8388604 * 1024
    assert mem.swap.free == 8388604 * 1024
    assert mem.swap.used.bytes == 0
    assert mem.swap.used.pct == 0.0


def test_parse_meminfo_units_and_skips(oldkern):
    table = parse_meminfo(oldkern)
    assert table["MemTotal"] == 61641404 * 1024
    assert table["HugePages_Total"] == 0
    assert not any(key.startswith("Garbage") for key in table)


def test_parse_meminfo_missing_file(tmp_path):
    with pytest.raises(OSError):
        parse_meminfo(HostFS(str(tmp_path)))


def test_get_linux_missing_file(tmp_path):
    with pytest.raises(OSError, match="error getting system memory info"):
        get_linux(HostFS(str(tmp_path)))


def test_mem_available_preferred():
    mem = memory_from_meminfo(
        {"MemTotal": 1000, "MemFree": 100, "MemAvailable": 600, "Cached": 300}
    )
    assert mem.actual.free == 600
    assert mem.actual.used.bytes == 400
    assert mem.used.bytes == 900


def test_swap_used_needs_both_values():
    mem = memory_from_meminfo({"MemTotal": 10, "MemFree": 5, "SwapTotal": 8})
    assert mem.swap.total == 8
    assert mem.swap.used.bytes is None
    assert mem.swap.free is None


def test_is_zero():
    assert UsedMemStats().is_zero()
    assert not UsedMemStats(bytes=0).is_zero()
    assert SwapMetrics().is_zero()
    assert not SwapMetrics(total=1).is_zero()


def test_to_dict_omits_absent():
    m = Memory(total=7, used=UsedMemStats(bytes=5), free=2)
    m.fill_percentages()
    assert m.to_dict() == {
        "total": 7,
        "used": {"pct": 0.7143, "bytes": 5},
        "free": 2,
        "actual": {"used": {"pct": 0.0}},
    }
    assert Memory().to_dict() == {}