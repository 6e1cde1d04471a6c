import sys

import pytest

from linuxchecks.plugin import PluginError
from linuxchecks.sysinfo import (
    CpuDescription,
    CpuMode,
    Topology,
    cpu_summary,
    read_topology,
    total_cpus,
)

MODEL_NAME = "Example(R) Processor Model 1000 @ 3.20GHz"


def _cpuinfo(flags, count=2):
    block = (
        "processor\t: {n}\n"
        "vendor_id\t: GenuineIntel\n"
        "cpu family\t: 6\n"
        "model\t\t: 158\n"
        f"model name\t: {MODEL_NAME}\n"
        f"flags\t\t: {flags}\n"
    )
    return "\n".join(block.format(n=n) for n in range(count))


CPUS = range(4)


@pytest.fixture
def sys_root(tmp_path):
    cpu_root = tmp_path / "devices" / "system" / "cpu"
    cpu_root.mkdir(parents=True)
    (cpu_root / "present").write_text(f"0-{len(CPUS) - 1}\n")
    for cpu in CPUS:
        topo = cpu_root / f"cpu{cpu}" / "topology"
        topo.mkdir(parents=True)
        first = cpu - cpu % 2
        (topo / "thread_siblings_list").write_text(f"{first}-{first + 1}\n")
        (topo / "core_siblings_list").write_text(f"0-{len(CPUS) - 1}\n")
        (topo / "physical_package_id").write_text("0\n")
    cpu1 = cpu_root / "cpu1"
    (cpu1 / "online").write_text("1\n")
    freq = cpu1 / "cpufreq"
    freq.mkdir()
    (freq / "scaling_governor").write_text("performance\n")
    (freq / "scaling_driver").write_text("acpi-cpufreq\n")
    (freq / "cpuinfo_min_freq").write_text("800000\n")
    (freq / "cpuinfo_max_freq").write_text("3200000\n")
    (cpu_root / "cpu2" / "online").write_text("0\n")
    return str(tmp_path)


def test_read_cpuinfo_fields(tmp_path):
    path = tmp_path / "cpuinfo"
    path.write_text(_cpuinfo("fpu vme lm vmx", count=3))
    desc = CpuDescription.read(str(path))
    assert desc.vendor == "GenuineIntel"
    assert desc.family == "6"
    assert desc.model == "158"
    assert desc.model_name == MODEL_NAME
    assert desc.ncpus == 3
    assert desc.virtualization == "VT-x"
    assert desc.mode == CpuMode.BIT32 | CpuMode.BIT64


def test_read_cpuinfo_amd_virtualization(tmp_path):
    path = tmp_path / "cpuinfo"
    path.write_text(_cpuinfo("fpu svm"))
    assert CpuDescription.read(str(path)).virtualization == "AMD-V"


def test_read_cpuinfo_without_virtualization(tmp_path):
    path = tmp_path / "cpuinfo"
    path.write_text(_cpuinfo("fpu vme"))
    desc = CpuDescription.read(str(path))
    assert desc.virtualization is None
    assert not desc.mode & CpuMode.BIT64


def test_read_cpuinfo_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "cpuinfo"
    path.write_text(_cpuinfo("fpu"))
    monkeypatch.setenv("NPL_TEST_PATH_PROCCPUINFO", str(path))
    assert CpuDescription.read().model_name == MODEL_NAME


def test_read_cpuinfo_missing_file(tmp_path):
    with pytest.raises(PluginError):
        CpuDescription.read(str(tmp_path / "nope"))


def test_total_cpus_from_present(sys_root):
    assert total_cpus(sys_root) == len(CPUS)


def test_total_cpus_counts_directories(sys_root, tmp_path):
    (tmp_path / "devices" / "system" / "cpu" / "present").unlink()
    assert total_cpus(sys_root) == len(CPUS)


def test_topology_matches_cpu_count(sys_root):
    topo = read_topology(sys_root)
    assert topo.sockets * topo.cores_per_socket * topo.threads_per_core == len(CPUS)
    assert topo.sys_root == sys_root


def test_summary_contents(sys_root):
    desc = CpuDescription(
        architecture="x86_64",
        ncpus=len(CPUS),
        mode=CpuMode.BIT32 | CpuMode.BIT64,
        vendor="GenuineIntel",
        model_name=MODEL_NAME,
        virtualization="VT-x",
    )
    text = cpu_summary(desc, read_topology(sys_root))
    lines = text.splitlines()
    assert lines[0] == "-= CPU Characteristics =-"
    assert f"{'CPU(s):':<30}{len(CPUS)}" in lines
    assert f"{'Model name:':<30}{MODEL_NAME}" in lines
    assert f"{'CPU op-mode(s):':<30}32-bit, 64-bit" in lines
    order = "Little Endian" if sys.byteorder == "little" else "Big Endian"
    assert f"{'Byte Order:':<30}{order}" in lines
    assert lines[-1] == f"{'Virtualization:':<30}VT-x"

    cpu0 = lines[lines.index("-CPU0-") + 1]
    cpu1 = lines[lines.index("-CPU1-") + 1]
    cpu2 = lines[lines.index("-CPU2-") + 1]
    assert cpu0 == f"{'CPU is Hot Pluggable:':<30}no"
    assert cpu1 == f"{'CPU is Hot Pluggable:':<30}yes (online)"
    assert cpu2 == f"{'CPU is Hot Pluggable:':<30}yes (offline)"

    section = text.split("-CPU1-")[1].split("-CPU2-")[0]
    assert f"{'CPU Freq Current Governor:':<30}performance" in section
    assert f"{'CPU Freq Driver:':<30}acpi-cpufreq" in section
    assert "Hardware Limits:" in section
    assert "Hardware Limits:" not in text.split("-CPU1-")[0]


def test_summary_without_mode_or_virtualization(sys_root):
    desc = CpuDescription(architecture="unknown", ncpus=1)
    text = cpu_summary(desc, Topology(1, 1, 1, sys_root))
    assert "CPU op-mode(s):" not in text
    assert "Virtualization:" not in text
    assert f"{'Vendor ID:':<30}n/a" in text.splitlines()