import pytest

from linuxchecks.meminfo import SystemMemory, VmStat, parse_meminfo, read_vmstat
from linuxchecks.plugin import PluginError

MEMINFO = """\
MemTotal:       16384256 kB
MemFree:        11918208 kB
MemAvailable:   14564424 kB
Buffers:          384876 kB
Cached:          2000000 kB
SwapCached:         1024 kB
Active:          3090692 kB
Inactive:        1044404 kB
Active(anon):     900000 kB
Inactive(anon):   100000 kB
Active(file):    2190692 kB
Inactive(file):   944404 kB
SwapTotal:       8388604 kB
SwapFree:        8387580 kB
Dirty:                92 kB
AnonPages:       1008780 kB
Shmem:            387476 kB
SReclaimable:     100000 kB
Committed_AS:    3678828 kB
HugePages_Total:       0
"""

VMSTAT = """\
nr_free_pages 2979552
pgpgin 1234567
pgpgout 7654321
pswpin 12
pswpout 34
pgfault 99999
pgmajfault 4242
"""


@pytest.fixture
def meminfo_path(tmp_path):
    path = tmp_path / "meminfo"
    path.write_text(MEMINFO)
    return str(path)


@pytest.fixture
def sysmem(meminfo_path):
    return SystemMemory.read(meminfo_path)


@pytest.mark.parametrize(
    "attribute, expected",
    [
        ("active", 3090692),
        ("anon_pages", 1008780),
        ("committed_as", 3678828),
        ("dirty", 92),
        ("inactive", 1044404),
        ("main_available", 14564424),
        ("main_buffers", 384876),
        ("main_free", 11918208),
        ("main_shared", 387476),
        ("main_total", 16384256),
        ("swap_cached", 1024),
        ("swap_free", 8387580),
        ("swap_total", 8388604),
    ],
)
def test_memory_values(sysmem, attribute, expected):
    assert getattr(sysmem, attribute) == expected


def test_used_memory_accounts_for_the_whole(sysmem):
    assert (
        sysmem.main_used + sysmem.main_free + sysmem.main_buffers + sysmem.main_cached
        == sysmem.main_total
    )


def test_cached_includes_reclaimable_slab(sysmem):
    assert sysmem.main_cached == 2000000 + 100000


def test_read_from_environment(monkeypatch, meminfo_path):
    monkeypatch.setenv("NPL_TEST_PATH_PROCMEMINFO", meminfo_path)
    assert SystemMemory.read().main_total == 16384256


def test_parse_meminfo_keys():
    values = parse_meminfo(MEMINFO)
    assert values["Active(file)"] == 2190692
    assert values["HugePages_Total"] == 0
    assert values["Committed_AS"] == 3678828


def test_parse_meminfo_skips_malformed_lines():
    assert parse_meminfo("garbage\nKey: notanumber kB\nMemFree: 5 kB\n") == {"MemFree": 5}


def test_available_falls_back_to_free_on_old_kernels(tmp_path):
    path = tmp_path / "meminfo"
    path.write_text("MemTotal: 1000 kB\nMemFree: 400 kB\nBuffers: 10 kB\nCached: 20 kB\n")
    memory = SystemMemory.read(str(path))
    assert memory.main_available == memory.main_free


def test_used_never_negative(tmp_path):
    path = tmp_path / "meminfo"
    path.write_text("MemTotal: 1000 kB\nMemFree: 400 kB\nBuffers: 500 kB\nCached: 500 kB\n")
    memory = SystemMemory.read(str(path))
    assert memory.main_used == memory.main_total - memory.main_free


def test_missing_meminfo_raises(tmp_path):
    with pytest.raises(PluginError):
        SystemMemory.read(str(tmp_path / "absent"))


def test_read_vmstat(tmp_path):
    path = tmp_path / "vmstat"
    path.write_text(VMSTAT)
    assert read_vmstat(str(path)) == VmStat(
        pgpgin=1234567, pgpgout=7654321, pgmajfault=4242, pswpin=12, pswpout=34
    )


def test_read_vmstat_from_environment(monkeypatch, tmp_path):
    path = tmp_path / "vmstat"
    path.write_text("pgmajfault 7\n")
    monkeypatch.setenv("NPL_TEST_PATH_PROCVMSTAT", str(path))
    stats = read_vmstat()
    assert stats.pgmajfault == 7
    assert stats.pgpgin == 0


def test_missing_vmstat_raises(tmp_path):
    with pytest.raises(PluginError):
        read_vmstat(str(tmp_path / "absent"))