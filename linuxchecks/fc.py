"""Plugin that monitors the status of the fiber channel ports."""

from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .plugin import (
    COUNT_DEFAULT,
    DELAY_DEFAULT,
    PACKAGE_NAME,
    PROGRAM_VERSION,
    PluginError,
    State,
    Thresholds,
    parse_delay_count,
    run_plugin,
)

_PROGRAM = "check_fc"
_SHORT_NAME = "FC"
_SYS_ROOT = "/sys"
_U64 = 2**64


@dataclass
class FcStatistics:
    """Frame and error counters summed over all the fiber channel hosts."""

    rx_frames: int = 0
    tx_frames: int = 0
    error_frames: int = 0
    invalid_crc_count: int = 0
    link_failure_count: int = 0
    loss_of_signal_count: int = 0
    loss_of_sync_count: int = 0


def _fc_host_dir(sys_root: str) -> Path:
    return Path(sys_root) / "class" / "fc_host"


def _check_sysfs(sys_root: str) -> None:
    if not (Path(sys_root) / "class").is_dir():
        raise PluginError(f"the sysfs filesystem is not mounted at {sys_root}")


def _hosts(fc_dir: Path) -> List[str]:
    try:
        with os.scandir(fc_dir) as entries:
            names = [
                entry.name
                for entry in entries
                if entry.is_symlink() or entry.is_dir(follow_symlinks=False)
            ]
    except OSError as exc:
        raise PluginError(f"cannot open {fc_dir}: {exc.strerror}") from exc
    return sorted(names)


def _getline(path: Path) -> Optional[str]:
    try:
        text = path.read_text(errors="replace")
    except OSError:
        return None
    lines = text.splitlines()
    return lines[0] if lines else ""


def _statistic(fc_dir: Path, host: str, name: str) -> int:
    line = _getline(fc_dir / host / "statistics" / name)
    if not line:
        return 0
    text = line.strip()
    for base in (0, 10):
        try:
            return int(text, base) % _U64
        except ValueError:
            continue
    return 0


def fc_host_status(
    count: int = COUNT_DEFAULT,
    delay: int = DELAY_DEFAULT,
    sys_root: str = _SYS_ROOT,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[int, int, FcStatistics]:
    """Return the number of ports, the online ones, and the summed statistics.

    With count >= 2 the frame counters are the traffic of the last interval
    of each host; otherwise they are the totals since boot.
    """
    fc_dir = _fc_host_dir(sys_root)
    stats = FcStatistics()
    ports = online = 0
    rx_total = tx_total = 0

    for host in _hosts(fc_dir):
        ports += 1
        if _getline(fc_dir / host / "port_state") == "Online":
            online += 1

        rx = previous_rx = _statistic(fc_dir, host, "rx_frames")
        tx = previous_tx = _statistic(fc_dir, host, "tx_frames")
        for _ in range(1, count):
            sleep(delay)
            current_rx = _statistic(fc_dir, host, "rx_frames")
            rx = (current_rx - previous_rx) % _U64
            previous_rx = current_rx
            current_tx = _statistic(fc_dir, host, "tx_frames")
            tx = (current_tx - previous_tx) % _U64
            previous_tx = current_tx

        rx_total += rx
        tx_total += tx
        for name in (
            "error_frames",
            "invalid_crc_count",
            "link_failure_count",
            "loss_of_signal_count",
            "loss_of_sync_count",
        ):
            total = getattr(stats, name) + _statistic(fc_dir, host, name)
            setattr(stats, name, total % _U64)

    stats.rx_frames = rx_total % _U64
    stats.tx_frames = tx_total % _U64
    return ports, online, stats


def fc_host_summary(verbose: bool = False, sys_root: str = _SYS_ROOT) -> str:
    """Describe each fc_host class device and, if verbose, its attributes."""
    fc_dir = _fc_host_dir(sys_root)
    lines: List[str] = []
    for host in _hosts(fc_dir):
        lines.append(f'Class Device = "{host}"')
        if not verbose:
            continue
        device = os.path.realpath(fc_dir / host / "device")
        lines.append(f'Class Device path = "{device}"')
        try:
            with os.scandir(fc_dir / host) as entries:
                attributes = sorted(
                    entry.name for entry in entries if entry.is_file(follow_symlinks=False)
                )
        except OSError as exc:
            raise PluginError(f"cannot open {fc_dir / host}: {exc.strerror}") from exc
        for name in attributes:
            value = _getline(fc_dir / host / name)
            if value is not None:
                lines.append(f'{name:>25} = "{value}"')
        lines.append("")
    return "\n".join(lines)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin monitors the status of the fiber status ports.",
        epilog=f"examples: {_PROGRAM} -c 2:; {_PROGRAM} -i -v",
    )
    parser.add_argument("-i", "--fchostinfo", action="store_true",
                        help="show the fc_host class object attributes")
    parser.add_argument("-w", "--warning", metavar="COUNTER", help="warning threshold")
    parser.add_argument("-c", "--critical", metavar="COUNTER", help="critical threshold")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="show details for command-line debugging")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
    parser.add_argument("timing", nargs="*", metavar="delay [count]",
                        help="seconds between updates and number of updates; "
                        "a count of 1 means the traffic since boot")
    return parser


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)

    if options.fchostinfo:
        _check_sysfs(_SYS_ROOT)
        print(fc_host_summary(options.verbose))
        return State.UNKNOWN

    delay, count = parse_delay_count(options.timing)
    _check_sysfs(_SYS_ROOT)
    thresholds = Thresholds.parse(options.warning, options.critical)

    ports, online, stats = fc_host_status(count, delay)
    status = thresholds.status(online)

    print(
        f"{_SHORT_NAME} {status.name} - Fiber Channel ports status: "
        f"{online}/{ports} Online "
        f"| rx_frames={stats.rx_frames} tx_frames={stats.tx_frames}"
        f" error_frames={stats.error_frames}"
        f" invalid_crc_count={stats.invalid_crc_count}"
        f" link_failure_count={stats.link_failure_count}"
        f" loss_of_signal_count={stats.loss_of_signal_count}"
        f" loss_of_sync_count={stats.loss_of_sync_count}"
    )
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the fiber channel check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())