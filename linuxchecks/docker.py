"""Plugin that returns some runtime metrics exposed by Docker."""

from __future__ import annotations

import argparse
import http.client
import json
import os
import socket
import sys
import time
from collections import Counter
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from .memory import K_SHIFT, parse_unit
from .plugin import (
    DELAY_DEFAULT,
    PACKAGE_NAME,
    PROGRAM_VERSION,
    PluginError,
    State,
    Thresholds,
    UsageError,
    parse_delay_count,
    run_plugin,
)

_PROGRAM = "check_docker"
_SHORT_NAME = "DOCKER"

_MEMORY_STAT = "/sys/fs/cgroup/memory/docker/memory.stat"
_ENV_MEMORY_STAT = "NPL_TEST_PATH_SYSDOCKERMEMSTAT"
_DOCKER_SOCKET = "/var/run/docker.sock"
_CONTAINERS_URL = "/containers/json"
_TIMEOUT = 10.0


@dataclass(frozen=True)
class DockerMemory:
    """Memory usage of the Docker containers: sizes in bytes, counters in events."""

    total_cache: int = 0
    total_rss: int = 0
    total_swap: int = 0
    total_unevictable: int = 0
    total_pgfault: int = 0
    total_pgmajfault: int = 0
    total_pgpgin: int = 0
    total_pgpgout: int = 0

    @classmethod
    def parse(cls, text: str) -> "DockerMemory":
        """Parse the "key value" lines of a cgroup memory.stat file."""
        wanted = {field.name for field in fields(cls)}
        values: Dict[str, int] = {}
        for line in text.splitlines():
            tokens = line.split()
            if len(tokens) >= 2 and tokens[0] in wanted:
                try:
                    values[tokens[0]] = int(tokens[1])
                except ValueError:
                    continue
        return cls(**values)

    @classmethod
    def read(cls, path: Optional[str] = None) -> "DockerMemory":
        """Read the memory statistics of the Docker cgroup."""
        if path is None:
            path = os.environ.get(_ENV_MEMORY_STAT, _MEMORY_STAT)
        try:
            text = Path(path).read_text(encoding="ascii", errors="replace")
        except OSError as exc:
            raise PluginError(f"error opening {path}: {exc.strerror}") from exc
        return cls.parse(text)


class _UnixConnection(http.client.HTTPConnection):
    """An HTTP connection carried over a Unix domain socket."""

    def __init__(self, socket_path: str, timeout: float = _TIMEOUT) -> None:
        super().__init__("localhost", timeout=timeout)
        self._socket_path = socket_path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self._socket_path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


def running_containers(
    image: Optional[str] = None, socket_path: str = _DOCKER_SOCKET
) -> Tuple[int, Dict[str, int]]:
    """Return the number of running containers and how many run each image.

    When image is given only the containers running that image are counted.
    """
    connection = _UnixConnection(socket_path)
    try:
        connection.request("GET", _CONTAINERS_URL)
        response = connection.getresponse()
        body = response.read()
    except (OSError, http.client.HTTPException) as exc:
        raise PluginError(
            f"cannot query the docker daemon at {socket_path}: {exc}"
        ) from exc
    finally:
        connection.close()

    if response.status != 200:
        raise PluginError(
            f"the docker daemon answered {response.status} {response.reason}"
        )
    try:
        containers = json.loads(body)
    except ValueError as exc:
        raise PluginError(f"invalid answer from the docker daemon: {exc}") from exc
    if not isinstance(containers, list):
        raise PluginError("invalid answer from the docker daemon: not a list")

    per_image: Counter = Counter()
    for container in containers:
        name = container.get("Image") if isinstance(container, dict) else None
        if not isinstance(name, str):
            continue
        if image is not None and name != image:
            continue
        per_image[name] += 1
    return sum(per_image.values()), dict(per_image)


def _convert(kilobytes: int, shift: int) -> int:
    return (kilobytes << K_SHIFT) >> shift


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROGRAM,
        description="This plugin returns some runtime metrics exposed by Docker",
        epilog=f"examples: {_PROGRAM} -w 100 -c 120; {_PROGRAM} --image nginx -c 5:; "
        f"{_PROGRAM} --memory -m -w 512 -c 640 5",
    )
    parser.add_argument("-i", "--image", metavar="IMAGE",
                        help="limit the investigation only to the containers "
                        "running IMAGE")
    parser.add_argument("-M", "--memory", action="store_true",
                        help="return the runtime memory metrics")
    for flag, name, unit in (
        ("-b", "--byte", "B"),
        ("-k", "--kilobyte", "kB"),
        ("-m", "--megabyte", "MB"),
        ("-g", "--gigabyte", "GB"),
    ):
        parser.add_argument(flag, name, dest="units", action="store_const", const=unit,
                            help=f"show output in {unit}")
    parser.add_argument("-w", "--warning", metavar="COUNTER", help="warning threshold")
    parser.add_argument("-c", "--critical", metavar="COUNTER", help="critical threshold")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="show details for command-line debugging")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s ({PACKAGE_NAME}) v{PROGRAM_VERSION}")
    parser.add_argument("delay", nargs="?",
                        help=f"seconds between updates (default: {DELAY_DEFAULT})")
    return parser


def _memory_report(
    thresholds: Thresholds, delay: int, units: str, verbose: bool
) -> Tuple[State, str, str]:
    shift = parse_unit(units)
    before = DockerMemory.read()

    kb_cache = before.total_cache // 1024
    kb_rss = before.total_rss // 1024
    kb_swap = before.total_swap // 1024
    kb_unevictable = before.total_unevictable // 1024
    kb_used = kb_cache + kb_rss + kb_swap

    time.sleep(delay)
    after = DockerMemory.read()

    deltas = {}
    for name in ("pgfault", "pgmajfault", "pgpgin", "pgpgout"):
        old = getattr(before, f"total_{name}")
        new = getattr(after, f"total_{name}")
        deltas[name] = new - old
        if verbose:
            print(f"delta ({delay} sec) for {name}: {new - old} == ({new}-{old})")

    status = thresholds.status(_convert(kb_used, shift))
    status_msg = f"{status.name}: {_convert(kb_used, shift)} {units} memory used"

    def amount(kilobytes: int) -> str:
        return f"{_convert(kilobytes, shift)}{units}"

    perfdata = (
        f"cache={amount(kb_cache)} rss={amount(kb_rss)} swap={amount(kb_swap)} "
        f"unevictable={amount(kb_unevictable)} "
        f"pgfault={deltas['pgfault']} pgmajfault={deltas['pgmajfault']} "
        f"pgpgin={deltas['pgpgin']} pgpgout={deltas['pgpgout']}"
    )
    return status, status_msg, perfdata


def _containers_report(
    thresholds: Thresholds, image: Optional[str], verbose: bool
) -> Tuple[State, str, str]:
    count, per_image = running_containers(image)
    if verbose:
        for name, number in per_image.items():
            print(f"{name}: {number}")
    status = thresholds.status(count)
    if image is not None:
        status_msg = (
            f'{status.name}: {count} running container(s) of type "{image}"'
        )
    else:
        status_msg = f"{status.name}: {count} running container(s)"
    perfdata = " ".join(f"{name}={number}" for name, number in per_image.items())
    return status, status_msg, perfdata or f"containers={count}"


def _check(argv: Optional[Sequence[str]]) -> State:
    options = _parser().parse_args(argv)
    delay, _ = parse_delay_count([options.delay] if options.delay is not None else [])

    if options.memory and options.image:
        raise UsageError("the options --memory and --image cannot be used together")
    thresholds = Thresholds.parse(options.warning, options.critical)

    if options.memory:
        status, status_msg, perfdata = _memory_report(
            thresholds, delay, options.units or "kB", options.verbose
        )
        kind = "memory"
    else:
        status, status_msg, perfdata = _containers_report(
            thresholds, options.image, options.verbose
        )
        kind = "containers"

    print(f"{_SHORT_NAME} {kind} {status_msg} | {perfdata}")
    return status


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the Docker check and return its exit code."""
    return int(run_plugin(_check, argv))


if __name__ == "__main__":
    sys.exit(main())