"""Plugin that monitors the interrupts serviced per second."""

from __future__ import annotations

import argparse
import sys
import time
from typing import Callable, List, Optional, Sequence, Tuple

from .plugin import (
    PACKAGE_NAME,
    PROGRAM_VERSION,
    State,
    Thresholds,
    parse_delay_count,
    run_plugin,
)
from .procstat import read_interrupts, read_interrupts_per_cpu

_PROGRAM = "check_intr"
_SHORT_NAME = "INTR"


def interrupt_rate(
    count: int,
    delay: int,
    verbose: bool = False,
    sample: Callable[[], int] = read_interrupts,
    sample_per_cpu: Callable[[], List[int]] = read_interrupts_per_cpu,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[int, List[int]]:
    """Return the interrupt rate and the per-CPU rates over the last interval.

    With count < 2 the rate is the total since boot and no per-CPU rates
    are returned.
    """
    previous = rate = sample()
    if verbose:
        print(f"intr = {rate}")

    first: Optional[List[int]] = None
    last: Optional[List[int]] = None
    if count <= 2:
        first = sample_per_cpu()

    for i in range(1, count):
        sleep(delay)
        current = sample()
        rate = (current - previous) // delay
        if verbose:
            print(f"intr = {current} --> {rate}/s")
        previous = current

        if i == count - 2:
            first = sample_per_cpu()
        elif i == count - 1:
            last = sample_per_cpu()

    if first is None or last is None:
        return rate, []
    return rate, [(new - old) // delay for old, new in zip(first, last)]


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin monitors the total number of system interrupts.",
        epilog=f"example: {_PROGRAM} -w 10000 1 2",
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

    rate, per_cpu = interrupt_rate(count, delay, options.verbose)
    status = thresholds.status(rate)

    unit = "/s" if count > 1 else ""
    cpus = "".join(f" intr_cpu{cpu}{unit}={value}" for cpu, value in enumerate(per_cpu))
    print(
        f"{_SHORT_NAME} {status.name} - number of interrupts{unit} {rate} "
        f"| intr{unit}={rate}{cpus}"
    )
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the interrupts check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())