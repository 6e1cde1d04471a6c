"""Plugin that checks whether the given filesystems are mounted."""

from __future__ import annotations

import argparse
import re
import sys
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .plugin import PACKAGE_NAME, PROGRAM_VERSION, PluginError, State, run_plugin

_PROGRAM = "check_ifmountfs"
_MOUNTS = "/proc/self/mounts"
_ESCAPE = re.compile(r"\\([0-7]{3})")


def _unescape(field: str) -> str:
    return _ESCAPE.sub(lambda match: chr(int(match.group(1), 8)), field)


def read_mount_points(path: str = _MOUNTS) -> Set[str]:
    """Return the mount directories listed in a mounts table."""
    try:
        with open(path, encoding="utf-8", errors="surrogateescape") as stream:
            mounted = {
                _unescape(fields[1])
                for fields in (line.split() for line in stream)
                if len(fields) >= 2
            }
    except OSError:
        mounted = set()
    if not mounted:
        raise PluginError("cannot read table of mounted file systems")
    return mounted


def check_mounts(
    mountpoints: Iterable[str], mounted: Iterable[str]
) -> Tuple[State, List[str]]:
    """Return CRITICAL and the missing mount points if any is not mounted."""
    known = set(mounted)
    missing = [point for point in mountpoints if point not in known]
    return (State.CRITICAL if missing else State.OK), missing


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin checks whether the given filesystems are mounted.",
        epilog=f"example: {_PROGRAM} /mnt/nfs-data /mnt/cdrom",
    )
    parser.add_argument("filesystems", nargs="+", metavar="FILESYSTEM")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
    return parser


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)
    status, missing = check_mounts(options.filesystems, read_mount_points())

    line = f"filesystems {status.name}" + "".join(f" {point}" for point in missing)
    if status is State.CRITICAL:
        line += " unmounted!"
    print(line)
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the mounted filesystems check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())