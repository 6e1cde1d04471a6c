"""Plugin that checks the system memory utilization."""

from __future__ import annotations

import argparse
import math
import sys
import time
from typing import Optional, Sequence

from .meminfo import SystemMemory, read_vmstat
from .plugin import (
    PACKAGE_NAME,
    PROGRAM_VERSION,
    PluginError,
    Range,
    State,
    Thresholds,
    UsageError,
    percentages_only,
    run_plugin,
)

_PROGRAM = "check_memory"
_SHORT_NAME = "MEMORY"

B_SHIFT = 0
K_SHIFT = 10
M_SHIFT = 20
G_SHIFT = 30

_UNITS = {
    "B": B_SHIFT,
    "bytes": B_SHIFT,
    "kB": K_SHIFT,
    "KiB": K_SHIFT,
    "MB": M_SHIFT,
    "MiB": M_SHIFT,
    "GB": G_SHIFT,
    "GiB": G_SHIFT,
}


def parse_unit(text: str) -> int:
    """Return the shift that converts bytes into the given unit."""
    try:
        return _UNITS[text]
    except KeyError:
        raise PluginError(f"unit type {text} not known") from None


def _convert(kilobytes: int, shift: int) -> int:
    return (kilobytes << K_SHIFT) >> shift


def perfdata_limit(limit_range: Optional[Range], total: int, shift: int) -> Optional[int]:
    """Turn a percentage threshold into an amount of memory in the output unit."""
    if limit_range is None:
        return None
    value = limit_range.end
    if math.isinf(value):
        value = limit_range.start
    if math.isinf(value):
        return None
    return _convert(int(total * value / 100), shift)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin checks the system memory utilization.",
        epilog=f"examples: {_PROGRAM} --available -w 20%%: -c 10%%:; "
        f"{_PROGRAM} --vmstats -w 80%% -c 90%%",
    )
    parser.add_argument("-a", "--available", action="store_true",
                        help="display the free/available memory")
    parser.add_argument("-C", "--caches", action="store_true",
                        help="does nothing, kept for compatibility")
    parser.add_argument("-s", "--vmstats", action="store_true",
                        help="display the virtual memory perfdata")
    parser.add_argument("-w", "--warning", metavar="PERCENT", help="warning threshold")
    parser.add_argument("-c", "--critical", metavar="PERCENT", help="critical threshold")
    for flag, name, unit in (
        ("-b", "--byte", "B"),
        ("-k", "--kilobyte", "kB"),
        ("-m", "--megabyte", "MB"),
        ("-g", "--gigabyte", "GB"),
    ):
        parser.add_argument(flag, name, dest="units", action="store_const", const=unit,
                            help=f"show output in {unit}")
    parser.add_argument("-u", "--units", dest="units", metavar="UNIT",
                        help="show output in the selected unit: "
                        "bytes, B, kB, MB, GB, KiB, MiB, GiB")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
    return parser


def _vmem_perfdata() -> str:
    before = read_vmstat()
    time.sleep(1)
    after = read_vmstat()
    return (
        f", vmem_pageins/s={after.pgpgin - before.pgpgin}, "
        f"vmem_pageouts/s={after.pgpgout - before.pgpgout}, "
        f"vmem_pgmajfault/s={after.pgmajfault - before.pgmajfault}"
    )


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)
    units = options.units or "kB"
    shift = parse_unit(units)

    if not percentages_only(options.warning, options.critical):
        raise UsageError("thresholds must be expressed as percentages")
    thresholds = Thresholds.parse(options.warning, options.critical)

    memory = SystemMemory.read()
    vmem_msg = _vmem_perfdata() if options.vmstats else ""

    monitored = memory.main_available if options.available else memory.main_used
    percent = monitored * 100.0 / memory.main_total if memory.main_total else 0.0
    status = thresholds.status(percent)

    def amount(kilobytes: int) -> str:
        return f"{_convert(kilobytes, shift)}{units}"

    warning = perfdata_limit(thresholds.warning, memory.main_total, shift)
    critical = perfdata_limit(thresholds.critical, memory.main_total, shift)
    limits = (
        "" if warning is None else str(warning),
        "" if critical is None else str(critical),
    )
    total = _convert(memory.main_total, shift)

    def limited(label: str, kilobytes: int, selected: bool) -> str:
        warn, crit = limits if selected else ("", "")
        return f"{label}={amount(kilobytes)};{warn};{crit};0;{total}"

    available_msg = limited("mem_available", memory.main_available, options.available)
    used_msg = limited("mem_used", memory.main_used, not options.available)

    status_msg = (
        f"{status.name}: {percent:.2f}% ({_convert(monitored, shift)} {units}) "
        f"{'available' if options.available else 'used'}"
    )
    perfdata = " ".join((
        f"mem_total={amount(memory.main_total)}",
        used_msg,
        f"mem_free={amount(memory.main_free)}",
        f"mem_shared={amount(memory.main_shared)}",
        f"mem_buffers={amount(memory.main_buffers)}",
        f"mem_cached={amount(memory.main_cached)}",
        available_msg,
        f"mem_active={amount(memory.active)}",
        f"mem_anonpages={amount(memory.anon_pages)}",
        f"mem_committed={amount(memory.committed_as)}",
        f"mem_dirty={amount(memory.dirty)}",
        f"mem_inactive={amount(memory.inactive)}",
    ))
    print(f"{_SHORT_NAME} {status_msg} | {perfdata}{vmem_msg}")
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the memory check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())