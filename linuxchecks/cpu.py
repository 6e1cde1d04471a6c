"""Plugin that checks the CPU (user mode) utilization or the I/O wait time."""

from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import dataclass, fields
from typing import Dict, List, Optional, Sequence, Tuple

from .plugin import (
    PACKAGE_NAME,
    PROGRAM_VERSION,
    State,
    Thresholds,
    UsageError,
    parse_delay_count,
    percentages_only,
    run_plugin,
)
from .procstat import CpuTime, read_cpu_times
from .sysinfo import CpuDescription, cpu_summary, read_topology, total_cpus

_FIELDS = ("user", "system", "idle", "iowait", "steal")


@dataclass
class CpuUsage:
    """Jiffies spent in each group of modes; never all zero."""

    cpuname: Optional[str]
    user: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    steal: int = 0

    def __post_init__(self) -> None:
        if not self.ratio:
            self.idle = 1

    @property
    def ratio(self) -> int:
        """Total number of jiffies accounted."""
        return self.user + self.system + self.idle + self.iowait + self.steal

    def percentages(self) -> Dict[str, float]:
        """Return the share of each mode as a percentage of the total."""
        ratio = self.ratio
        return {name: 100.0 * getattr(self, name) / ratio for name in _FIELDS}


def usage_from_totals(times: Sequence[CpuTime]) -> List[CpuUsage]:
    """Build the usage since boot from a single sample."""
    return [
        CpuUsage(
            cpuname=t.cpuname,
            user=t.user + t.nice,
            system=t.system + t.irq + t.softirq,
            idle=t.idle,
            iowait=t.iowait,
            steal=t.steal,
        )
        for t in times
    ]


def usage_delta(
    old: Sequence[CpuTime], new: Sequence[CpuTime], debt: Sequence[int]
) -> Tuple[List[CpuUsage], List[int]]:
    """Return the usage between two samples and the idle debt carried forward.

    The idle counter can run backwards for a moment; a negative idle delta is
    kept as a debt and paid back on the next interval.
    """
    usages: List[CpuUsage] = []
    new_debt: List[int] = []
    for before, after, owed in zip(old, new, debt):
        idle = after.idle - before.idle
        if owed:
            idle += owed
            owed = 0
        if idle < 0:
            owed, idle = idle, 0
        usages.append(
            CpuUsage(
                cpuname=before.cpuname if before.cpuname is not None else after.cpuname,
                user=(after.user - before.user) + (after.nice - before.nice),
                system=(after.system - before.system)
                + (after.irq - before.irq)
                + (after.softirq - before.softirq),
                idle=idle,
                iowait=after.iowait - before.iowait,
                steal=after.steal - before.steal,
            )
        )
        new_debt.append(owed)
    return usages, new_debt


def format_perfdata(name: str, usage: CpuUsage) -> str:
    """Return the performance data of one CPU."""
    return " ".join(
        f"{name}_{field}={value:.1f}%" for field, value in usage.percentages().items()
    )


def _verbose_line(usage: CpuUsage) -> str:
    name = usage.cpuname or "n/a"
    return ", ".join(
        f"{name}_{field}={value:.1f}%" for field, value in usage.percentages().items()
    )


def _mode() -> str:
    name = os.path.basename(sys.argv[0]) if sys.argv else ""
    if name.startswith("check_"):
        name = name[len("check_"):]
    return "iowait" if name.startswith("iowait") else "user"


def _parser(program: str, mode: str) -> argparse.ArgumentParser:
    description = (
        "This plugin checks I/O wait bottlenecks"
        if mode == "iowait"
        else "This plugin checks the CPU (user mode) utilization"
    )
    parser = argparse.ArgumentParser(
        prog=program,
        description=description,
        epilog=f"examples: {program} -m -p -w 85% -c 95%; {program} -w 85% -c 95% 1 2",
    )
    parser.add_argument("-i", "--cpuinfo", action="store_true",
                        help="show the CPU characteristics (for debugging)")
    parser.add_argument("-m", "--no-cpu-model", dest="cpu_model", action="store_false",
                        help="do not display the CPU model in the output message")
    parser.add_argument("-p", "--per-cpu", action="store_true",
                        help="display the utilization of each CPU")
    parser.add_argument("-w", "--warning", metavar="PERCENT", help="warning threshold")
    parser.add_argument("-c", "--critical", metavar="PERCENT", help="critical threshold")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="show details for command-line debugging")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
    parser.add_argument("timing", nargs="*", metavar="delay [count]",
                        help="seconds between updates and number of updates; "
                        "a count of 1 means the percentages since boot")
    return parser


def _check(argv: Optional[Sequence[str]], mode: str) -> State:
    program = f"check_{'iowait' if mode == 'iowait' else 'cpu'}"
    short_name = "IOWAIT" if mode == "iowait" else "CPU"
    options = _parser(program, mode).parse_args(argv)

    if options.cpuinfo:
        print(cpu_summary(CpuDescription.read(), read_topology()))
        return State.UNKNOWN

    if not percentages_only(options.warning, options.critical):
        raise UsageError("thresholds must be expressed as percentages")

    delay, count = parse_delay_count(options.timing)
    thresholds = Thresholds.parse(options.warning, options.critical)

    ncpus = total_cpus() + 1 if options.per_cpu else 1
    first = previous = read_cpu_times(ncpus)
    usages = usage_from_totals(first)
    debt = [0] * ncpus

    for _ in range(1, count):
        time.sleep(delay)
        current = read_cpu_times(ncpus)
        usages, debt = usage_delta(previous, current, debt)
        previous = current
        if options.verbose:
            for usage in usages:
                print(_verbose_line(usage))

    status = State.OK
    cpu_perc = 0.0
    for usage in usages:
        cpu_perc = usage.percentages()[mode]
        status = max(status, thresholds.status(cpu_perc))

    model = ""
    if options.cpu_model:
        model = f"({CpuDescription.read().model_name or 'n/a'}) "

    perfdata = "".join(
        f" {format_perfdata(sample.cpuname, usage)}"
        for sample, usage in zip(first, usages)
        if sample.cpuname
    )
    print(f"{short_name} {model}{status.name} - cpu {mode} {cpu_perc:.1f}% |{perfdata}")
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CPU check and return its exit code."""
    mode = _mode()
    return int(run_plugin(lambda args: _check(args, mode), argv))


if __name__ == "__main__":
    sys.exit(main())