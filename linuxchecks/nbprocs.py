"""Plugin that displays the number of running processes per user."""

from __future__ import annotations

import argparse
import pwd
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .plugin import PACKAGE_NAME, PROGRAM_VERSION, PluginError, State, Thresholds, run_plugin

_PROGRAM = "check_nbprocs"
_SHORT_NAME = "NBPROCS"
_UNLIMITED = 2**64 - 1


@dataclass
class UserProcesses:
    """Processes (or threads) owned by one user, with its process limits."""

    username: str
    count: int = 0
    rlimit_soft: Optional[int] = None
    rlimit_hard: Optional[int] = None


def _username(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _read_status(pid_dir: Path) -> Optional[Tuple[int, int]]:
    try:
        text = (pid_dir / "status").read_text(errors="replace")
    except OSError:
        return None
    uid, threads = None, 1
    for line in text.splitlines():
        key, _, value = line.partition(":")
        fields = value.split()
        if key == "Uid" and fields:
            uid = int(fields[0])
        elif key == "Threads" and fields:
            threads = int(fields[0])
    return None if uid is None else (uid, threads)


def _limit(token: str) -> int:
    return _UNLIMITED if token == "unlimited" else int(token)


def _read_nproc_limits(pid_dir: Path) -> Tuple[Optional[int], Optional[int]]:
    try:
        text = (pid_dir / "limits").read_text(errors="replace")
    except OSError:
        return None, None
    for line in text.splitlines():
        if line.startswith("Max processes"):
            fields = line.split()
            try:
                return _limit(fields[2]), _limit(fields[3])
            except (IndexError, ValueError):
                break
    return None, None


def count_processes(threads: bool = False, proc_root: str = "/proc") -> List[UserProcesses]:
    """Count the processes (or threads) of every user, in order of first appearance."""
    root = Path(proc_root)
    try:
        pids = sorted((entry for entry in root.iterdir() if entry.name.isdigit()),
                      key=lambda entry: int(entry.name))
    except OSError as exc:
        raise PluginError(f"cannot read {proc_root}: {exc.strerror}") from exc

    users: Dict[int, UserProcesses] = {}
    for pid_dir in pids:
        info = _read_status(pid_dir)
        if info is None:
            continue
        uid, nthreads = info
        user = users.get(uid)
        if user is None:
            soft, hard = _read_nproc_limits(pid_dir)
            user = users[uid] = UserProcesses(_username(uid), 0, soft, hard)
        user.count += nthreads if threads else 1
    return list(users.values())


def _limit_text(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin displays the number of running processes per user.",
        epilog=f"example: {_PROGRAM} --threads -w 1500 -c 2000",
    )
    parser.add_argument("--threads", action="store_true",
                        help="display the number of threads")
    parser.add_argument("-w", "--warning", metavar="COUNTER", help="warning threshold")
    parser.add_argument("-c", "--critical", metavar="COUNTER", help="critical threshold")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="show details for command-line debugging")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
    return parser


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)
    thresholds = Thresholds.parse(options.warning, options.critical)

    users = count_processes(options.threads)
    total = sum(user.count for user in users)
    status = thresholds.status(total)

    if options.verbose:
        for user in users:
            print(f"{user.username}: {user.count}")

    perfdata = "".join(
        f"nbr_{user.username}={user.count};{_limit_text(user.rlimit_soft)};"
        f"{_limit_text(user.rlimit_hard)};0 "
        for user in users
    )
    print(f"{_SHORT_NAME} {status.name} - {total} running processes | {perfdata}")
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the processes check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())