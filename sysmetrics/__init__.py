"""Host CPU and memory metrics collection."""

__version__ = "0.1.0"

__all__ = [
    "cpu",
    "cpu_monitor",
    "cpu_psutil",
    "hostfs",
    "memory",
    "memory_platform",
    "procstat",
    "rounding",
]