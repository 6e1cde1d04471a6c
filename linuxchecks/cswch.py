"""Plugin that monitors the number of context switches per second."""

from __future__ import annotations

import argparse
import sys
import time
from typing import Callable, Optional, Sequence

from .plugin import (
    PACKAGE_NAME,
    PROGRAM_VERSION,
    State,
    Thresholds,
    parse_delay_count,
    run_plugin,
)
from .procstat import read_context_switches

_PROGRAM = "check_cswch"
_SHORT_NAME = "CSWCH"


def context_switch_rate(
    count: int,
    delay: int,
    verbose: bool = False,
    sample: Callable[[], int] = read_context_switches,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Return context switches per second, or the boot total when count < 2."""
    previous = rate = sample()
    if verbose:
        print(f"ctxt = {rate}")

    for _ in range(1, count):
        sleep(delay)
        current = sample()
        rate = (current - previous) // delay
        if verbose:
            print(f"ctxt = {current} --> {rate}/s")
        previous = current

    return rate


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin monitors the total number of context "
        "switches across all CPUs.",
        epilog=f"example: {_PROGRAM} 1 2",
    )
    parser.add_argument("-w", "--warning", metavar="COUNTER", help="warning threshold")
    parser.add_argument("-c", "--critical", metavar="COUNTER", help="critical threshold")
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="show details for command-line debugging",
    )
    parser.add_argument(
        "-V", "--version", action="version",
        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}",
    )
    parser.add_argument(
        "timing", nargs="*", metavar="delay [count]",
        help="seconds between updates and number of updates",
    )
    return parser


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)
    delay, count = parse_delay_count(options.timing)
    thresholds = Thresholds.parse(options.warning, options.critical)

    rate = context_switch_rate(count, delay, options.verbose)
    status = thresholds.status(rate)

    unit = "/s" if count > 1 else ""
    print(
        f"{_SHORT_NAME} {status.name} - number of context switches{unit} "
        f"{rate} | cswch{unit}={rate}"
    )
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the context switch check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())