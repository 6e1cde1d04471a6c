import pytest

from linuxchecks.cswch import context_switch_rate, main
from linuxchecks.plugin import State

PROC_STAT = "cpu  1 2 3 4 5 6 7 8 0 0\nctxt 13817032\nintr 12345\n"


@pytest.fixture
def proc_stat(tmp_path, monkeypatch):
    path = tmp_path / "stat"
    path.write_text(PROC_STAT)
    monkeypatch.setenv("NPL_TEST_PATH_PROCSTAT", str(path))
    return path


def test_single_sample_returns_total():
    slept = []
    rate = context_switch_rate(1, 1, sample=iter([100]).__next__, sleep=slept.append)
    assert rate == 100
    assert slept == []


def test_rate_over_several_samples():
    slept = []
    samples = iter([100, 160, 220]).__next__
    rate = context_switch_rate(3, 2, sample=samples, sleep=slept.append)
    assert rate == 30
    assert slept == [2, 2]


def test_verbose_output(capsys):
    samples = iter([100, 160]).__next__
    context_switch_rate(2, 1, verbose=True, sample=samples, sleep=lambda s: None)
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "ctxt = 100"
    assert out[1].startswith("ctxt = 160 --> ")


def test_main_ok(proc_stat, capsys):
    assert main(["1", "1"]) == State.OK
    assert capsys.readouterr().out == (
        "CSWCH OK - number of context switches 13817032 | cswch=13817032\n"
    )


def test_main_critical(proc_stat, capsys):
    assert main(["-c", "100", "1", "1"]) == State.CRITICAL
    assert capsys.readouterr().out.startswith("CSWCH CRITICAL")


def test_main_warning(proc_stat, capsys):
    assert main(["-w", "100", "-c", "100000000", "1", "1"]) == State.WARNING
    assert capsys.readouterr().out.startswith("CSWCH WARNING")


def test_main_bad_delay(proc_stat, capsys):
    assert main(["0"]) == State.UNKNOWN
    assert "delay must be positive integer" in capsys.readouterr().err


def test_main_bad_threshold(proc_stat):
    assert main(["-w", "abc", "1", "1"]) == State.UNKNOWN


def test_main_help(capsys):
    assert main(["--help"]) == State.OK
    assert "check_cswch" in capsys.readouterr().out