"""Readers for the kernel CPU statistics files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from .plugin import PluginError

_PROC_STAT = "/proc/stat"
_PROC_INTERRUPTS = "/proc/interrupts"
_ENV_PROC_STAT = "NPL_TEST_PATH_PROCSTAT"
_ENV_PROC_INTERRUPTS = "NPL_TEST_PATH_PROCINTERRUPTS"

_CPU_FIELDS = (
    "user", "nice", "system", "idle", "iowait",
    "irq", "softirq", "steal", "guest", "guest_nice",
)


@dataclass(frozen=True)
class CpuTime:
    """Jiffies spent by one CPU (or all of them) in each mode."""

    cpuname: Optional[str] = None
    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0


def _stat_path(path: Optional[str]) -> str:
    return path if path is not None else os.environ.get(_ENV_PROC_STAT, _PROC_STAT)


def _read_lines(path: str) -> List[str]:
    try:
        with open(path, encoding="ascii", errors="replace") as stream:
            return stream.read().splitlines()
    except OSError as exc:
        raise PluginError(f"error opening {path}: {exc.strerror}") from exc


def read_cpu_times(ncpus: int, path: Optional[str] = None) -> List[CpuTime]:
    """Return ncpus entries: the aggregate "cpu" line first, then each CPU.

    CPUs missing from the file (offline ones) come back with no name and zeros.
    """
    times: List[CpuTime] = []
    for line in _read_lines(_stat_path(path)):
        if len(times) >= ncpus:
            break
        fields = line.split()
        if not fields or not fields[0].startswith("cpu"):
            continue
        values = dict(zip(_CPU_FIELDS, (int(v) for v in fields[1:])))
        times.append(CpuTime(cpuname=fields[0], **values))
    times.extend(CpuTime() for _ in range(ncpus - len(times)))
    return times


def _read_counter(key: str, path: Optional[str]) -> int:
    real_path = _stat_path(path)
    for line in _read_lines(real_path):
        fields = line.split()
        if len(fields) >= 2 and fields[0] == key:
            try:
                return int(fields[1])
            except ValueError:
                break
    raise PluginError(f"{real_path}: cannot read the '{key}' counter")


def read_context_switches(path: Optional[str] = None) -> int:
    """Return the total number of context switches since boot."""
    return _read_counter("ctxt", path)


def read_interrupts(path: Optional[str] = None) -> int:
    """Return the total number of interrupts serviced since boot."""
    return _read_counter("intr", path)


def read_interrupts_per_cpu(path: Optional[str] = None) -> List[int]:
    """Return, for each CPU, the sum of all interrupts it has serviced."""
    if path is None:
        path = os.environ.get(_ENV_PROC_INTERRUPTS, _PROC_INTERRUPTS)
    lines = _read_lines(path)
    if not lines:
        raise PluginError(f"{path}: empty file")

    ncpus = sum(1 for name in lines[0].split() if name.startswith("CPU"))
    totals = [0] * ncpus
    for line in lines[1:]:
        _, sep, counters = line.partition(":")
        if not sep:
            continue
        for cpu, token in enumerate(counters.split()[:ncpus]):
            if not token.isdigit():
                break
            totals[cpu] += int(token)
    return totals