"""Plugin that checks the current system load average."""

from __future__ import annotations

import argparse
import os
import re
import sys
from typing import Optional, Sequence, Tuple

from .plugin import PACKAGE_NAME, PROGRAM_VERSION, PluginError, State, run_plugin

_PROGRAM = "check_load"
_SHORT_NAME = "LOAD"
_MINUTES = (1, 5, 15)

_FLOAT = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
_THRESHOLDS = re.compile(rf"\s*({_FLOAT}),\s*({_FLOAT})")

LoadTriple = Tuple[float, float, float]


def parse_load_thresholds(text: str) -> Tuple[float, float]:
    """Parse "WARNING,CRITICAL"; the warning must be lower than the critical."""
    match = _THRESHOLDS.match(text)
    if match is None:
        raise PluginError("command line error: bad thresholds")
    warning, critical = float(match.group(1)), float(match.group(2))
    if warning >= critical:
        raise PluginError("command line error: bad thresholds")
    return warning, critical


def _online_cpus() -> int:
    try:
        online = os.sysconf("SC_NPROCESSORS_ONLN")
    except (ValueError, OSError):
        online = -1
    if online > 0:
        return online
    return os.cpu_count() or 1


def normalize_loadavg(loadavg: Sequence[float], ncpus: int = 0) -> LoadTriple:
    """Divide the load averages by the number of CPUs (online ones when 0)."""
    if not ncpus:
        ncpus = _online_cpus()
    values = tuple(value / ncpus if ncpus > 1 else value for value in loadavg[:3])
    return values  # type: ignore[return-value]


def loadavg_status(
    loadavg: Sequence[float],
    wload: Sequence[float],
    cload: Sequence[float],
    required: Sequence[bool],
) -> State:
    """Compare each required load average with its thresholds."""
    status = State.OK
    for load, warning, critical, wanted in zip(loadavg, wload, cload, required):
        if not wanted:
            continue
        if load > critical:
            return State.CRITICAL
        if load > warning:
            status = State.WARNING
    return status


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin checks the current system load average.",
        epilog=f"example: {_PROGRAM} -r --load1=2,3 --load15=1.5,2.5",
    )
    parser.add_argument(
        "-r", "--percpu", action="store_true",
        help="divide the load averages by the number of CPUs",
    )
    parser.add_argument(
        "-1", "--load1", metavar="WLOAD1,CLOAD1",
        help="warning and critical thresholds for load1",
    )
    parser.add_argument(
        "-5", "--load5", metavar="WLOAD5,CLOAD5",
        help="warning and critical thresholds for load5",
    )
    parser.add_argument(
        "-L", "--load15", metavar="WLOAD15,CLOAD15",
        help="warning and critical thresholds for load15",
    )
    parser.add_argument(
        "-V", "--version", action="version",
        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}",
    )
    return parser


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)

    wload = [0.0, 0.0, 0.0]
    cload = [0.0, 0.0, 0.0]
    required = [False, False, False]
    for index, text in enumerate((options.load1, options.load5, options.load15)):
        if text is not None:
            wload[index], cload[index] = parse_load_thresholds(text)
            required[index] = True

    try:
        loadavg: Sequence[float] = os.getloadavg()
    except OSError:
        raise PluginError("the system load average was unobtainable") from None
    if options.percpu:
        loadavg = normalize_loadavg(loadavg, 0)

    status = loadavg_status(loadavg, wload, cload, required)

    status_msg = "{} - average: {:.2f}, {:.2f}, {:.2f}".format(status.name, *loadavg)
    perfdata = " ".join(
        f"load{minutes}={load:.3f};{warning:.3f};{critical:.3f};0"
        for minutes, load, warning, critical in zip(_MINUTES, loadavg, wload, cload)
    )
    print(f"{_SHORT_NAME} {status_msg} | {perfdata}")
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the load average check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())