import os

import pytest

from linuxchecks.filecount import (
    FileCounts,
    count_files,
    is_hidden,
    main,
    parse_age,
    parse_size,
)
from linuxchecks.plugin import PluginError

ONE_MIN = 60
ONE_HOUR = 60 * ONE_MIN
ONE_DAY = 24 * ONE_HOUR
ONE_WEEK = 7 * ONE_DAY
ONE_YEAR = 31557600


@pytest.mark.parametrize(
    "name, expected",
    [(".hiddenfile", True), ("anotherfile", False)],
)
def test_is_hidden(name, expected):
    assert is_hidden(name) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("100s", 100),
        ("30m", 30 * ONE_MIN),
        ("4h", 4 * ONE_HOUR),
        ("10d", 10 * ONE_DAY),
        ("0.5d", 12 * ONE_HOUR),
        ("4w", 4 * ONE_WEEK),
        ("1y", ONE_YEAR),
        ("100S", 100),
        ("30M", 30 * ONE_MIN),
        ("4H", 4 * ONE_HOUR),
        ("10D", 10 * ONE_DAY),
        ("0.5D", 12 * ONE_HOUR),
        ("4W", 4 * ONE_WEEK),
        ("1Y", ONE_YEAR),
    ],
)
def test_parse_age(text, expected):
    assert parse_age(text) == expected


def test_parse_age_negative_and_plain():
    assert parse_age("-1h") == -3600
    assert parse_age("42") == 42


@pytest.mark.parametrize("text", ["", "abc", "10x", "1h2"])
def test_parse_age_invalid(text):
    with pytest.raises(ValueError):
        parse_age(text)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("100", 100),
        ("100b", 100),
        ("10k", 10000),
        ("-10.5k", -10500),
        ("2M", 2000000),
        ("1g", 1000000000),
        ("1t", 1000000000000),
        ("1p", 1000000000000000),
    ],
)
def test_parse_size(text, expected):
    assert parse_size(text) == expected


@pytest.mark.parametrize("text", ["", "k", "10q", "1.2.3k"])
def test_parse_size_invalid(text):
    with pytest.raises(ValueError):
        parse_size(text)


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a.txt").write_text("x")
    (tmp_path / "b.log").write_text("y" * 2000)
    (tmp_path / ".hidden").write_text("z")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "c.txt").write_text("c")
    (sub / ".inner").write_text("i")
    hidden_dir = tmp_path / ".secretdir"
    hidden_dir.mkdir()
    (hidden_dir / "d.txt").write_text("d")
    os.symlink(tmp_path / "a.txt", tmp_path / "link")
    os.mkfifo(tmp_path / "fifo")
    return tmp_path


def test_count_default(tree):
    counts = count_files(str(tree))
    assert counts == FileCounts(
        total=5, directory=1, hidden=0, regular=2, special=1, symlink=1, unknown=0
    )


def test_count_recursive(tree):
    counts = count_files(str(tree), recursive=True)
    assert counts.total == 6
    assert counts.regular == 3
    assert counts.directory == 1


def test_count_include_hidden_recursive(tree):
    counts = count_files(str(tree), recursive=True, include_hidden=True)
    assert counts.total == 10
    assert counts.hidden == 3
    assert counts.regular == 6
    assert counts.directory == 2


def test_count_regular_only(tree):
    counts = count_files(str(tree), recursive=True, regular_only=True)
    assert counts == FileCounts(total=3, regular=3)


def test_count_ignore_symlinks(tree):
    counts = count_files(str(tree), ignore_symlinks=True)
    assert counts.symlink == 0
    assert counts.total == 4


def test_count_pattern(tree):
    counts = count_files(str(tree), recursive=True, pattern="*.txt")
    assert counts.total == 2
    assert counts.regular == 2


def test_count_size(tree):
    assert count_files(str(tree), regular_only=True, size=1000).total == 1
    assert count_files(str(tree), regular_only=True, size=-1000).total == 1
    assert count_files(str(tree), regular_only=True, size=5000).total == 0


def test_count_age(tmp_path):
    now = 1_700_000_000.0
    old = tmp_path / "old.txt"
    new = tmp_path / "new.txt"
    old.write_text("o")
    new.write_text("n")
    os.utime(old, (now - 7200, now - 7200))
    os.utime(new, (now - 10, now - 10))
    assert count_files(str(tmp_path), age=3600, now=now).total == 1
    assert count_files(str(tmp_path), age=-3600, now=now).total == 1
    assert count_files(str(tmp_path), age=10000, now=now).total == 0
    assert count_files(str(tmp_path), now=now).total == 2


def test_count_missing_directory(tmp_path):
    with pytest.raises(PluginError, match="Cannot open"):
        count_files(str(tmp_path / "missing"))


@pytest.fixture
def simple(tmp_path):
    (tmp_path / "a.txt").write_text("x")
    (tmp_path / "sub").mkdir()
    return tmp_path


def test_main_output(simple, capsys):
    assert main([str(simple)]) == 0
    d = str(simple)
    out = capsys.readouterr().out
    assert out == (
        f"FILECOUNT OK - total number of files: 2 | {d}_total=2 {d}_directory=1 "
        f"{d}_regular=1 {d}_special=0 {d}_symlink=0 {d}_unknown=0 \n"
    )


def test_main_regular_only_hidden(simple, capsys):
    assert main(["-f", "-H", str(simple)]) == 0
    d = str(simple)
    out = capsys.readouterr().out
    assert out == (
        f"FILECOUNT OK - total number of files: 1 | {d}_total=1 {d}_hidden=0 "
        f"{d}_regular=1 {d}_unknown=0 \n"
    )


def test_main_thresholds(simple, capsys):
    assert main(["-w", "0", "-c", "1", str(simple)]) == 2
    assert "FILECOUNT CRITICAL" in capsys.readouterr().out
    assert main(["-w", "1", "-c", "5", str(simple)]) == 1
    assert "FILECOUNT WARNING" in capsys.readouterr().out


def test_main_negative_size_argument(tmp_path, capsys):
    (tmp_path / "small").write_text("s")
    (tmp_path / "big").write_text("b" * 20000)
    assert main(["-f", "-s", "-10.5k", str(tmp_path)]) == 0
    assert "total number of files: 1 |" in capsys.readouterr().out


def test_main_multiple_directories(tmp_path, capsys):
    first = tmp_path / "one"
    second = tmp_path / "two"
    first.mkdir()
    second.mkdir()
    (first / "x").write_text("x")
    (second / "y").write_text("y")
    (second / "z").write_text("z")
    assert main(["-f", str(first), str(second)]) == 0
    out = capsys.readouterr().out
    assert "total number of files: 3 |" in out
    assert f"{first}_total=1 " in out
    assert f"{second}_total=2 " in out


def test_main_no_directory():
    assert main([]) == 3


def test_main_bad_age(simple):
    assert main(["-t", "abc", str(simple)]) == 3


def test_main_missing_directory(tmp_path):
    assert main([str(tmp_path / "missing")]) == 3


def test_main_bad_threshold(simple):
    assert main(["-w", "notanumber", str(simple)]) == 3


def test_main_help(capsys):
    assert main(["--help"]) == 0
    assert "Usage:" in capsys.readouterr().out