"""CPU description, topology and frequency information read from the kernel."""

from __future__ import annotations

import os
import platform
import re
import sys
from dataclasses import dataclass
from enum import IntFlag
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .plugin import PluginError

_CPUINFO = "/proc/cpuinfo"
_ENV_CPUINFO = "NPL_TEST_PATH_PROCCPUINFO"
_SYS_ROOT = "/sys"
_CPU_DIR_NAME = re.compile(r"cpu(\d+)")
_X86_32 = re.compile(r"i[3-6]86")


class CpuMode(IntFlag):
    """Operating modes the processor can run in."""

    NONE = 0
    BIT32 = 1
    BIT64 = 2


def _cpu_root(sys_root: str) -> Path:
    return Path(sys_root) / "devices" / "system" / "cpu"


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(errors="replace").strip()
    except OSError:
        return None


def _read_int(path: Path) -> Optional[int]:
    text = _read_text(path)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _parse_cpu_list(text: str) -> Set[int]:
    """Expand a kernel CPU list such as "0-3,8" into a set of CPU numbers."""
    cpus: Set[int] = set()
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        first, sep, last = chunk.partition("-")
        if sep:
            cpus.update(range(int(first), int(last) + 1))
        else:
            cpus.add(int(first))
    return cpus


def _cpu_dirs(sys_root: str) -> List[Path]:
    root = _cpu_root(sys_root)
    try:
        entries = [e for e in root.iterdir() if _CPU_DIR_NAME.fullmatch(e.name)]
    except OSError:
        return []
    return sorted(entries, key=lambda entry: int(entry.name[3:]))


@dataclass(frozen=True)
class CpuDescription:
    """Characteristics of the processor as the kernel describes them."""

    architecture: str
    ncpus: int
    mode: CpuMode = CpuMode.NONE
    vendor: Optional[str] = None
    family: Optional[str] = None
    model: Optional[str] = None
    model_name: Optional[str] = None
    virtualization: Optional[str] = None

    @classmethod
    def read(cls, cpuinfo_path: Optional[str] = None) -> "CpuDescription":
        """Read the description of the processor from a cpuinfo file."""
        path = cpuinfo_path or os.environ.get(_ENV_CPUINFO, _CPUINFO)
        try:
            text = Path(path).read_text(errors="replace")
        except OSError as exc:
            raise PluginError(f"error opening {path}: {exc.strerror}") from exc

        ncpus = 0
        fields = {}
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key, value = key.strip(), value.strip()
            if key == "processor":
                ncpus += 1
            else:
                fields.setdefault(key, value)

        architecture = platform.machine()
        flags = set(fields.get("flags", "").split())

        if "lm" in flags:
            mode = CpuMode.BIT32 | CpuMode.BIT64
        elif _X86_32.fullmatch(architecture):
            mode = CpuMode.BIT32
        else:
            mode = CpuMode.NONE

        if "vmx" in flags:
            virtualization: Optional[str] = "VT-x"
        elif "svm" in flags:
            virtualization = "AMD-V"
        else:
            virtualization = None

        return cls(
            architecture=architecture,
            ncpus=ncpus or os.cpu_count() or 1,
            mode=mode,
            vendor=fields.get("vendor_id"),
            family=fields.get("cpu family"),
            model=fields.get("model"),
            model_name=fields.get("model name"),
            virtualization=virtualization,
        )


@dataclass(frozen=True)
class Topology:
    """How the CPUs are arranged into sockets, cores and threads."""

    sockets: int
    cores_per_socket: int
    threads_per_core: int
    sys_root: str = _SYS_ROOT


def total_cpus(sys_root: str = _SYS_ROOT) -> int:
    """Return the number of CPUs present in the system, online or not."""
    present = _read_text(_cpu_root(sys_root) / "present")
    if present:
        try:
            return len(_parse_cpu_list(present))
        except ValueError:
            pass
    dirs = _cpu_dirs(sys_root)
    if dirs:
        return len(dirs)
    return os.cpu_count() or 1


def read_topology(sys_root: str = _SYS_ROOT) -> Topology:
    """Read the number of sockets, cores per socket and threads per core."""
    threads = cores = 0
    packages: Set[str] = set()
    for cpu_dir in _cpu_dirs(sys_root):
        topo = cpu_dir / "topology"
        thread_siblings = _read_text(topo / "thread_siblings_list")
        core_siblings = _read_text(topo / "core_siblings_list")
        package = _read_text(topo / "physical_package_id")
        if thread_siblings is None or core_siblings is None:
            continue
        if not threads:
            threads = len(_parse_cpu_list(thread_siblings)) or 1
            cores = max(len(_parse_cpu_list(core_siblings)) // threads, 1)
        if package is not None:
            packages.add(package)

    if not threads:
        return Topology(1, total_cpus(sys_root), 1, sys_root)
    return Topology(max(len(packages), 1), cores, threads, sys_root)


def _freq_to_string(khz: int) -> str:
    if khz >= 1_000_000:
        return f"{khz / 1_000_000:.2f} GHz"
    if khz >= 1000:
        return f"{khz // 1000} MHz"
    return f"{khz} kHz"


def _duration_to_string(ns: int) -> str:
    if ns >= 1_000_000:
        return f"{ns / 1_000_000:.2f} ms"
    if ns >= 1000:
        return f"{ns / 1000:.2f} us"
    return f"{ns} ns"


def _row(key: str, value: object) -> str:
    return f"{key:<30}{value}"


def _cpu_lines(cpu_dir: Path) -> Iterable[str]:
    online_file = cpu_dir / "online"
    if online_file.exists():
        online = _read_text(online_file) == "1"
        pluggable = "yes (online)" if online else "yes (offline)"
    else:
        pluggable = "no"
    yield _row("CPU is Hot Pluggable:", pluggable)

    freq = cpu_dir / "cpufreq"
    latency = _read_int(freq / "cpuinfo_transition_latency")
    if latency:
        yield _row("Maximum Transition Latency:", _duration_to_string(latency))

    current = _read_int(freq / "scaling_cur_freq")
    if current and current > 0:
        yield _row("Current CPU Frequency:", _freq_to_string(current))

    available = _read_text(freq / "scaling_available_frequencies")
    if available:
        values = "".join(
            f"{_freq_to_string(int(token))} "
            for token in available.split()
            if token.isdigit()
        )
        yield _row("Available CPU Frequencies:", values)

    low = _read_int(freq / "cpuinfo_min_freq")
    high = _read_int(freq / "cpuinfo_max_freq")
    if low is not None and high is not None:
        yield _row(
            "Hardware Limits:", f"{_freq_to_string(low)} - {_freq_to_string(high)}"
        )

    for key, name in (
        ("CPU Freq Current Governor:", "scaling_governor"),
        ("CPU Freq Available Governors:", "scaling_available_governors"),
        ("CPU Freq Driver:", "scaling_driver"),
    ):
        value = _read_text(freq / name)
        if value:
            yield _row(key, value)


def cpu_summary(desc: CpuDescription, topology: Topology) -> str:
    """Return a human readable listing of the CPU characteristics."""
    lines = ["-= CPU Characteristics =-", _row("Architecture:", desc.architecture)]

    modes = [
        label
        for flag, label in ((CpuMode.BIT32, "32-bit"), (CpuMode.BIT64, "64-bit"))
        if desc.mode & flag
    ]
    if modes:
        lines.append(_row("CPU op-mode(s):", ", ".join(modes)))

    byte_order = "Little Endian" if sys.byteorder == "little" else "Big Endian"
    lines.append(_row("Byte Order:", byte_order))
    lines.append(_row("CPU(s):", desc.ncpus))
    lines.append(_row("Thread(s) per core:", topology.threads_per_core))
    lines.append(_row("Core(s) per socket:", topology.cores_per_socket))
    lines.append(_row("Socket(s):", topology.sockets))
    lines.append(_row("Vendor ID:", desc.vendor or "n/a"))
    lines.append(_row("CPU Family:", desc.family or "n/a"))
    lines.append(_row("Model:", desc.model or "n/a"))
    lines.append(_row("Model name:", desc.model_name or "n/a"))

    root = _cpu_root(topology.sys_root)
    for cpu in range(desc.ncpus):
        lines.append(f"-CPU{cpu}-")
        lines.extend(_cpu_lines(root / f"cpu{cpu}"))

    if desc.virtualization:
        lines.append(_row("Virtualization:", desc.virtualization))
    return "\n".join(lines)