"""Readers for the kernel memory and virtual memory statistics."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional

from .plugin import PluginError

_PROC_MEMINFO = "/proc/meminfo"
_ENV_MEMINFO = "NPL_TEST_PATH_PROCMEMINFO"
_PROC_VMSTAT = "/proc/vmstat"
_ENV_VMSTAT = "NPL_TEST_PATH_PROCVMSTAT"
_MIN_FREE_KBYTES = "/proc/sys/vm/min_free_kbytes"


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="ascii", errors="replace")
    except OSError as exc:
        raise PluginError(f"error opening {path}: {exc.strerror}") from exc


def parse_meminfo(text: str) -> Dict[str, int]:
    """Parse "Key:  value [kB]" lines into a mapping of key to value."""
    values: Dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        tokens = rest.split()
        if not sep or not tokens:
            continue
        try:
            values[key.strip()] = int(tokens[0])
        except ValueError:
            continue
    return values


def _min_free_kbytes() -> Optional[int]:
    try:
        return int(Path(_MIN_FREE_KBYTES).read_text().strip())
    except (OSError, ValueError):
        return None


def _available(values: Mapping[str, int]) -> int:
    """Return MemAvailable, or an estimate of it on kernels that lack it."""
    if "MemAvailable" in values:
        return values["MemAvailable"]

    free = values.get("MemFree", 0)
    active_file = values.get("Active(file)")
    inactive_file = values.get("Inactive(file)")
    reclaimable = values.get("SReclaimable")
    if active_file is None or inactive_file is None or reclaimable is None:
        return free
    min_free = _min_free_kbytes()
    if min_free is None:
        return free

    watermark_low = min_free * 5 // 4
    pagecache = active_file + inactive_file
    available = (
        free
        - watermark_low
        + pagecache
        - min(pagecache // 2, watermark_low)
        + reclaimable
        - min(reclaimable // 2, watermark_low)
    )
    return max(available, 0)


@dataclass(frozen=True)
class SystemMemory:
    """System memory and swap figures, all in kilobytes."""

    main_total: int = 0
    main_free: int = 0
    main_available: int = 0
    main_buffers: int = 0
    main_cached: int = 0
    main_shared: int = 0
    main_used: int = 0
    active: int = 0
    inactive: int = 0
    anon_pages: int = 0
    committed_as: int = 0
    dirty: int = 0
    swap_cached: int = 0
    swap_free: int = 0
    swap_total: int = 0

    @classmethod
    def read(cls, path: Optional[str] = None) -> "SystemMemory":
        """Read the memory figures from a meminfo file."""
        if path is None:
            path = os.environ.get(_ENV_MEMINFO, _PROC_MEMINFO)
        values = parse_meminfo(_read_text(path))

        total = values.get("MemTotal", 0)
        free = values.get("MemFree", 0)
        buffers = values.get("Buffers", 0)
        cached = values.get("Cached", 0) + values.get("SReclaimable", 0)
        used = total - free - buffers - cached
        if used < 0:
            used = total - free

        return cls(
            main_total=total,
            main_free=free,
            main_available=_available(values),
            main_buffers=buffers,
            main_cached=cached,
            main_shared=values.get("Shmem", values.get("MemShared", 0)),
            main_used=used,
            active=values.get("Active", 0),
            inactive=values.get("Inactive", 0),
            anon_pages=values.get("AnonPages", 0),
            committed_as=values.get("Committed_AS", 0),
            dirty=values.get("Dirty", 0),
            swap_cached=values.get("SwapCached", 0),
            swap_free=values.get("SwapFree", 0),
            swap_total=values.get("SwapTotal", 0),
        )


@dataclass(frozen=True)
class VmStat:
    """Paging and swapping counters since boot."""

    pgpgin: int = 0
    pgpgout: int = 0
    pgmajfault: int = 0
    pswpin: int = 0
    pswpout: int = 0


def read_vmstat(path: Optional[str] = None) -> VmStat:
    """Read the paging counters from a vmstat file."""
    if path is None:
        path = os.environ.get(_ENV_VMSTAT, _PROC_VMSTAT)
    wanted = {field.name for field in fields(VmStat)}
    counters: Dict[str, int] = {}
    for line in _read_text(path).splitlines():
        tokens = line.split()
        if len(tokens) >= 2 and tokens[0] in wanted:
            try:
                counters[tokens[0]] = int(tokens[1])
            except ValueError:
                continue
    return VmStat(**counters)