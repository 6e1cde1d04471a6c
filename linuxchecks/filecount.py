"""Plugin that returns the number of files found in one or more directories."""

from __future__ import annotations

import fnmatch
import getopt
import os
import re
import stat
import sys
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterator, List, Optional, Sequence, Tuple

from .plugin import (
    PACKAGE_NAME,
    PROGRAM_VERSION,
    PluginError,
    State,
    Thresholds,
    UsageError,
    run_plugin,
)

_PROGRAM = "check_filecount"
_SHORT_NAME = "FILECOUNT"

_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)"
_AGE = re.compile(rf"\s*({_NUMBER})\s*([smhdwy]?)\s*", re.IGNORECASE)
_SIZE = re.compile(rf"\s*({_NUMBER})\s*([bkmgtp]?)\s*", re.IGNORECASE)

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_AGE_MULTIPLIERS = {
    "": Decimal(1),
    "s": Decimal(1),
    "m": Decimal(_MINUTE),
    "h": Decimal(_HOUR),
    "d": Decimal(_DAY),
    "w": Decimal(7 * _DAY),
    "y": Decimal("365.25") * _DAY,
}
_SIZE_MULTIPLIERS = {
    "": Decimal(1),
    "b": Decimal(1),
    "k": Decimal(1000),
    "m": Decimal(1000) ** 2,
    "g": Decimal(1000) ** 3,
    "t": Decimal(1000) ** 4,
    "p": Decimal(1000) ** 5,
}

_SHORT_OPTIONS = "c:fHln:rs:t:uvw:hV"
_LONG_OPTIONS = [
    "ignore-symlinks",
    "ignore-unknown",
    "include-hidden",
    "name=",
    "recursive",
    "regular-only",
    "size=",
    "time=",
    "critical=",
    "warning=",
    "verbose",
    "help",
    "version",
]

_USAGE = f"""\
{_PROGRAM} ({PACKAGE_NAME}) v{PROGRAM_VERSION}
This plugin returns the number of files found in one or more directories.

Usage:
  {_PROGRAM} [-w COUNTER] [-c COUNTER] [-f] [-H] [-l] [-r] [-u] \\
\t[-s SIZE] [-t AGE] [-n PATTERN] DIR [DIR...]

Options:
  -f, --regular-only       count regular files only
  -H, --include-hidden     do not skip the hidden files
  -l, --ignore-symlinks    ignore symlinks
  -n, --name               only count files that match PATTERN
  -r, --recursive          check recursively each subdirectory
  -s, --size               count only files of a specific size
  -t, --time               count only files of a specific age
  -u, --ignore-unknown     ignore file with type unknown
  -w, --warning COUNTER    warning threshold
  -c, --critical COUNTER   critical threshold
  -v, --verbose   show details for command-line debugging (Nagios may truncate output)
  -h, --help      display this help and exit
  -V, --version   output version information and exit

Notes:
  By default, this plugin counts the directories and files (of every type)
  found in DIR, in a non recursive way.  The hidden files are ignored.
  Option "name".
    Only count files that match PATTERN, where PATTERN is a shell-like wildcard.
    Only the filename is checked against the pattern, not the entire path.
  Option "size".
    When SIZE is a positive number, only files that are at least this big
    are counted.  If SIZE is a negative number, this is inversed, i. e.
    only files smaller than the absolute value of SIZE are counted.
    A "multiplier" may be added: b (byte), k (kilobyte), m (megabyte),
    g (gigabyte), t (terabyte), and p (petabyte).  Please note that
    there are 1000 bytes in a kilobyte, not 1024.
  Option "time".
    If AGE is greater than zero, only files that haven't been touched in the
    last AGE seconds are counted.  If AGE is a negative number, this is
    inversed.  The number can also be followed by a "multiplier" to easily
    specify a larger timespan.  Valid multipliers are s (second), m (minute),
    h (hour), d (day), w (week), and y (year).

Examples:
  {_PROGRAM} -l -r /tmp
  {_PROGRAM} -w 150 -c 200 -f -r /var/log/myapp /tmp/myapp
  {_PROGRAM} -w 10 -c 15 -f -r -s -10.5k /tmp/myapp
  {_PROGRAM} -r -t -1h /tmp/myapp   # files modified in the last hour
  {_PROGRAM} -f -n "myapp-202207*.log" /var/log/myapp
"""


@dataclass
class FileCounts:
    """How many entries of each kind were counted in a directory tree."""

    total: int = 0
    directory: int = 0
    hidden: int = 0
    regular: int = 0
    special: int = 0
    symlink: int = 0
    unknown: int = 0


def is_hidden(name: str) -> bool:
    """Return True for a hidden file name (one starting with a dot)."""
    return name.startswith(".")


def _scaled(text: str, pattern: "re.Pattern[str]", multipliers: dict, what: str) -> int:
    match = pattern.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid {what}: {text!r}")
    try:
        number = Decimal(match.group(1))
    except InvalidOperation:
        raise ValueError(f"invalid {what}: {text!r}") from None
    return int(number * multipliers[match.group(2).lower()])


def parse_age(text: str) -> int:
    """Convert an age such as "30m", "0.5d" or "-1h" into seconds."""
    return _scaled(text, _AGE, _AGE_MULTIPLIERS, "age")


def parse_size(text: str) -> int:
    """Convert a size such as "10k" or "-10.5k" into bytes (1k = 1000 bytes)."""
    return _scaled(text, _SIZE, _SIZE_MULTIPLIERS, "size")


def _kind(mode: int) -> str:
    if stat.S_ISLNK(mode):
        return "symlink"
    if stat.S_ISDIR(mode):
        return "directory"
    if stat.S_ISREG(mode):
        return "regular"
    if stat.S_ISCHR(mode) or stat.S_ISBLK(mode) or stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode):
        return "special"
    return "unknown"


def _walk(
    entries: List[os.DirEntry], recursive: bool, include_hidden: bool
) -> Iterator[Tuple[str, os.stat_result]]:
    for entry in entries:
        if not include_hidden and is_hidden(entry.name):
            continue
        try:
            info = entry.stat(follow_symlinks=False)
        except OSError:
            continue
        yield entry.name, info
        if recursive and stat.S_ISDIR(info.st_mode):
            try:
                with os.scandir(entry.path) as it:
                    children = list(it)
            except OSError:
                continue
            yield from _walk(children, recursive, include_hidden)


def count_files(
    directory: str,
    recursive: bool = False,
    regular_only: bool = False,
    include_hidden: bool = False,
    ignore_symlinks: bool = False,
    ignore_unknown: bool = False,
    age: int = 0,
    size: int = 0,
    pattern: Optional[str] = None,
    now: Optional[float] = None,
) -> FileCounts:
    """Count the entries of a directory that pass the given filters."""
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as exc:
        raise PluginError(f"Cannot open {directory}: {exc.strerror}") from exc

    if now is None:
        now = time.time()

    counts = FileCounts()
    for name, info in _walk(entries, recursive, include_hidden):
        kind = _kind(info.st_mode)
        if kind == "symlink" and (ignore_symlinks or regular_only):
            continue
        if kind == "unknown" and ignore_unknown:
            continue
        if regular_only and kind != "regular":
            continue
        if pattern is not None and not fnmatch.fnmatch(name, pattern):
            continue
        if age:
            file_age = now - info.st_mtime
            if age > 0 and file_age < age:
                continue
            if age < 0 and file_age >= -age:
                continue
        if size:
            if size > 0 and info.st_size < size:
                continue
            if size < 0 and info.st_size >= -size:
                continue

        counts.total += 1
        setattr(counts, kind, getattr(counts, kind) + 1)
        if is_hidden(name):
            counts.hidden += 1
    return counts


def _perfdata(
    directory: str,
    counts: FileCounts,
    regular_only: bool,
    include_hidden: bool,
    ignore_symlinks: bool,
) -> str:
    items = [("total", counts.total)]
    if not regular_only:
        items.append(("directory", counts.directory))
    if include_hidden:
        items.append(("hidden", counts.hidden))
    items.append(("regular", counts.regular))
    if not regular_only:
        items.append(("special", counts.special))
    if not (ignore_symlinks or regular_only):
        items.append(("symlink", counts.symlink))
    items.append(("unknown", counts.unknown))
    return "".join(f"{directory}_{label}={value} " for label, value in items)


def _usage_error(message: str) -> UsageError:
    sys.stderr.write(_USAGE)
    return UsageError(message)


def _check(argv: Optional[Sequence[str]]) -> State:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        options, directories = getopt.gnu_getopt(args, _SHORT_OPTIONS, _LONG_OPTIONS)
    except getopt.GetoptError as exc:
        raise _usage_error(str(exc)) from None

    warning: Optional[str] = None
    critical: Optional[str] = None
    pattern: Optional[str] = None
    age = size = 0
    recursive = regular_only = include_hidden = False
    ignore_symlinks = ignore_unknown = verbose = False

    for option, value in options:
        if option in ("-c", "--critical"):
            critical = value
        elif option in ("-w", "--warning"):
            warning = value
        elif option in ("-f", "--regular-only"):
            regular_only = True
        elif option in ("-H", "--include-hidden"):
            include_hidden = True
        elif option in ("-l", "--ignore-symlinks"):
            ignore_symlinks = True
        elif option in ("-n", "--name"):
            pattern = value
        elif option in ("-r", "--recursive"):
            recursive = True
        elif option in ("-s", "--size"):
            try:
                size = parse_size(value)
            except ValueError as exc:
                raise PluginError(f"failed to parse file size argument: {exc}") from None
        elif option in ("-t", "--time"):
            try:
                age = parse_age(value)
            except ValueError as exc:
                raise PluginError(f"failed to parse file age argument: {exc}") from None
        elif option in ("-u", "--ignore-unknown"):
            ignore_unknown = True
        elif option in ("-v", "--verbose"):
            verbose = True
        elif option in ("-h", "--help"):
            sys.stdout.write(_USAGE)
            return State.OK
        elif option in ("-V", "--version"):
            print(f"{_PROGRAM} ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
            return State.OK

    if not directories:
        raise _usage_error("no directory given")

    perfdata = []
    total = 0
    for directory in directories:
        if verbose:
            flags = [
                label
                for label, enabled in (
                    ("recursive", recursive),
                    ("regular-only", regular_only),
                    ("include-hidden", include_hidden),
                    ("ignore-symlinks", ignore_symlinks),
                    ("ignore-unknown", ignore_unknown),
                )
                if enabled
            ]
            print(f"checking directory {directory} with flags "
                  f"[{', '.join(flags)}] ...")
            if age:
                relation = "less than" if age < 0 else "more than"
                print(f"looking for files that were touched {relation} "
                      f"{abs(age)} seconds ago...")
            if size:
                relation = "less" if size < 0 else "greater"
                print(f"looking for files with size {relation} than "
                      f"{abs(size)} bytes...")
            if pattern is not None:
                print(f"looking for files that match the pattern `{pattern}'...")

        counts = count_files(
            directory,
            recursive=recursive,
            regular_only=regular_only,
            include_hidden=include_hidden,
            ignore_symlinks=ignore_symlinks,
            ignore_unknown=ignore_unknown,
            age=age,
            size=size,
            pattern=pattern,
        )
        perfdata.append(
            _perfdata(directory, counts, regular_only, include_hidden, ignore_symlinks)
        )
        total += counts.total

    thresholds = Thresholds.parse(warning, critical)
    status = thresholds.status(total)
    print(f"{_SHORT_NAME} {status.name} - total number of files: {total} | "
          f"{''.join(perfdata)}")
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the file count check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())