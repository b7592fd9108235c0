import pytest

from sysmetrics.cpu import CPU, CPUInfo
from sysmetrics.hostfs import HostFS
from sysmetrics.procstat import (
    parse_freebsd_cpu_line,
    parse_linux_cpu_line,
    read_procfs,
    scan_cpuinfo,
    scan_stat,
)

STAT = """cpu  100 2 30 400 5 6 7 8 0 0
cpu0 60 1 20 200 3 4 5 6 0 0
cpu1 40 1 10 200 2 2 2 2 0 0
intr 12345 0 0
ctxt 999
"""

CPUINFO = """processor\t: 0
vendor_id\t: GenuineIntel
model\t\t: 142
model name\t: Example CPU @ 2.40GHz
cpu MHz\t\t: 2400.000
physical id\t: 0
core id\t\t: 0

processor\t: 1
vendor_id\t: GenuineIntel
model\t\t: 142
model name\t: Example CPU @ 2.40GHz
cpu MHz\t\t: 1800.500
physical id\t: 0
core id\t\t: 1

"""


def test_parse_linux_line():
    cpu = parse_linux_cpu_line("cpu  100 2 30 400 5 6 7 8 0 0")
    assert cpu == CPU(user=100, nice=2, system=30, idle=400, iowait=5, irq=6, softirq=7, steal=8)


def test_parse_freebsd_line():
    cpu = parse_freebsd_cpu_line("cpu  100 2 30 400")
    assert cpu == CPU(user=100, nice=2, system=30, idle=400)


def test_parse_line_bad_field():
    with pytest.raises(ValueError, match="failed to parse user: x"):
        parse_linux_cpu_line("cpu x 2 30 400 5 6 7 8")


def test_parse_line_reports_all_bad_fields():
    with pytest.raises(ValueError) as info:
        parse_freebsd_cpu_line("cpu a 2 b 4")
    assert "failed to parse user: a" in str(info.value)
    assert "failed to parse sys: b" in str(info.value)


def test_parse_line_too_short():
    with pytest.raises(ValueError):
        parse_linux_cpu_line("cpu 1 2 3")


def test_scan_stat():
    metrics = scan_stat(STAT.splitlines(), parse_linux_cpu_line)
    assert metrics.totals.user == 100
    assert metrics.totals.steal == 8
    assert [c.user for c in metrics.cpus] == [60, 40]
    assert metrics.cpus[1].idle == 200


def test_scan_stat_error_in_core_line():
    with pytest.raises(ValueError, match="error parsing CPU line"):
        scan_stat(["cpu0 1 2 x 4"], parse_freebsd_cpu_line)


def test_scan_stat_error_in_global_line():
    with pytest.raises(ValueError, match="error parsing global CPU line"):
        scan_stat(["cpu  1 2 x 4"], parse_freebsd_cpu_line)


def test_scan_cpuinfo():
    infos = scan_cpuinfo(CPUINFO.splitlines())
    assert infos == [
        CPUInfo(model_name="Example CPU @ 2.40GHz", model_number="142", mhz=2400.0, physical_id=0, core_id=0),
        CPUInfo(model_name="Example CPU @ 2.40GHz", model_number="142", mhz=1800.5, physical_id=0, core_id=1),
    ]


def test_scan_cpuinfo_needs_trailing_separator():
    infos = scan_cpuinfo(["model name : A", "", "model name : B"])
    assert infos == [CPUInfo(model_name="A")]


def test_scan_cpuinfo_bad_core_id():
    with pytest.raises(ValueError, match="parsing core ID"):
        scan_cpuinfo(["core id : abc", ""])


def test_scan_cpuinfo_bad_mhz():
    with pytest.raises(ValueError, match="parsing CPU 0 Mhz"):
        scan_cpuinfo(["cpu MHz : fast", ""])


def _write_proc(root, stat, cpuinfo):
    proc = root / "proc"
    proc.mkdir()
    (proc / "stat").write_text(stat)
    (proc / "cpuinfo").write_text(cpuinfo)


def test_read_procfs(tmp_path):
    _write_proc(tmp_path, STAT, CPUINFO)
    metrics = read_procfs(HostFS(str(tmp_path)), parse_linux_cpu_line)
    assert metrics.totals.idle == 400
    assert len(metrics.cpus) == 2
    assert [i.mhz for i in metrics.cpu_info] == [2400.0, 1800.5]


def test_read_procfs_missing_stat(tmp_path):
    with pytest.raises(OSError, match="error opening file"):
        read_procfs(HostFS(str(tmp_path)), parse_linux_cpu_line)


def test_read_procfs_bad_stat(tmp_path):
    _write_proc(tmp_path, "cpu  a b c d e f g h\n", CPUINFO)
    with pytest.raises(ValueError, match="scanning stat file"):
        read_procfs(HostFS(str(tmp_path)), parse_linux_cpu_line)


def test_read_procfs_missing_cpuinfo(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "stat").write_text(STAT)
    with pytest.raises(OSError, match="opening"):
        read_procfs(HostFS(str(tmp_path)), parse_linux_cpu_line)