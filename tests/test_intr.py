import pytest

from linuxchecks.intr import interrupt_rate, main
from linuxchecks.plugin import State

PROC_STAT = "cpu  1 2 3 4 5 6 7 8 0 0\nintr 12345 10 20\nctxt 13817032\n"
PROC_INTERRUPTS = "   CPU0   CPU1\n  0:  10  1  timer\n"


@pytest.fixture
def proc_files(tmp_path, monkeypatch):
    stat = tmp_path / "stat"
    stat.write_text(PROC_STAT)
    interrupts = tmp_path / "interrupts"
    interrupts.write_text(PROC_INTERRUPTS)
    monkeypatch.setenv("NPL_TEST_PATH_PROCSTAT", str(stat))
    monkeypatch.setenv("NPL_TEST_PATH_PROCINTERRUPTS", str(interrupts))


def _recorder(values):
    calls = []
    source = iter(values)

    def sample():
        value = next(source)
        calls.append(value)
        return value

    return sample, calls


def test_single_sample_has_no_per_cpu_rates():
    per_cpu, calls = _recorder([[10, 20]])
    rate, cpus = interrupt_rate(
        1, 1, sample=iter([500]).__next__, sample_per_cpu=per_cpu, sleep=lambda s: None
    )
    assert rate == 500
    assert cpus == []
    assert calls == [[10, 20]]


def test_two_samples_use_per_cpu_before_and_after():
    per_cpu, calls = _recorder([[10, 20], [15, 30]])
    slept = []
    rate, cpus = interrupt_rate(
        2, 1, sample=iter([100, 150]).__next__, sample_per_cpu=per_cpu, sleep=slept.append
    )
    assert rate == 50
    assert cpus == [5, 10]
    assert len(calls) == 2
    assert slept == [1]


def test_per_cpu_rates_cover_last_interval_only():
    per_cpu, calls = _recorder([[10, 20], [14, 20]])
    rate, cpus = interrupt_rate(
        3, 2, sample=iter([0, 10, 30]).__next__, sample_per_cpu=per_cpu,
        sleep=lambda s: None,
    )
    assert rate == (30 - 10) // 2
    assert cpus == [(14 - 10) // 2, 0]
    assert len(calls) == 2


def test_verbose_output(capsys):
    interrupt_rate(
        2, 1, verbose=True, sample=iter([100, 150]).__next__,
        sample_per_cpu=lambda: [0], sleep=lambda s: None,
    )
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "intr = 100"
    assert out[1].startswith("intr = 150 --> ")


def test_main_ok(proc_files, capsys):
    assert main(["1", "1"]) == State.OK
    assert capsys.readouterr().out == (
        "INTR OK - number of interrupts 12345 | intr=12345\n"
    )


def test_main_critical(proc_files, capsys):
    assert main(["-c", "100", "1", "1"]) == State.CRITICAL
    assert capsys.readouterr().out.startswith("INTR CRITICAL")


def test_main_too_large_count(proc_files, capsys):
    assert main(["1", "1000"]) == State.UNKNOWN
    assert "too large count value" in capsys.readouterr().err