"""Shared machinery for the monitoring plugins: states, thresholds, arguments."""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Sequence, Tuple

PACKAGE_NAME = "linuxchecks"
PROGRAM_VERSION = "1.0"

DELAY_DEFAULT = 1
DELAY_MAX = 60
COUNT_DEFAULT = 2
COUNT_MAX = 10


class State(IntEnum):
    """Plugin result states, whose values are the process exit codes."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


class PluginError(Exception):
    """A failure that ends the plugin with the given state."""

    def __init__(self, message: str, state: State = State.UNKNOWN) -> None:
        super().__init__(message)
        self.state = state


class UsageError(PluginError):
    """The command line could not be understood."""


def _number(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {text!r}")
    return value


@dataclass(frozen=True)
class Range:
    """A threshold range; a value outside it (or inside, if inverted) alerts."""

    start: float = 0.0
    end: float = math.inf
    inside: bool = False

    @classmethod
    def parse(cls, text: str) -> "Range":
        """Parse "[@]start:end", "end", "start:" or "~:end"; '%' signs are ignored."""
        spec = text.replace("%", "").strip()
        inside = spec.startswith("@")
        if inside:
            spec = spec[1:]
        if not spec:
            raise ValueError(f"empty range: {text!r}")
        if ":" in spec:
            low, high = spec.split(":", 1)
            if low == "~":
                start = -math.inf
            else:
                start = _number(low) if low else 0.0
            end = _number(high) if high else math.inf
        else:
            start, end = 0.0, _number(spec)
        if start > end:
            raise ValueError(f"range start is greater than its end: {text!r}")
        return cls(start, end, inside)

    def alert(self, value: float) -> bool:
        """Return True when value should raise an alert."""
        within = self.start <= value <= self.end
        return within if self.inside else not within


@dataclass(frozen=True)
class Thresholds:
    """Warning and critical ranges; either may be absent."""

    warning: Optional[Range] = None
    critical: Optional[Range] = None

    @classmethod
    def parse(cls, warning: Optional[str], critical: Optional[str]) -> "Thresholds":
        """Build thresholds from the command-line strings."""
        try:
            return cls(
                Range.parse(warning) if warning is not None else None,
                Range.parse(critical) if critical is not None else None,
            )
        except ValueError as exc:
            raise UsageError(f"invalid threshold: {exc}") from exc

    def status(self, value: float) -> State:
        """Return the state that value falls into."""
        if self.critical is not None and self.critical.alert(value):
            return State.CRITICAL
        if self.warning is not None and self.warning.alert(value):
            return State.WARNING
        return State.OK


def percentages_only(warning: Optional[str], critical: Optional[str]) -> bool:
    """Return True when every given threshold is expressed as a percentage."""
    return all("%" in text for text in (warning, critical) if text is not None)


def _parse_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise PluginError(f"failed to parse argument: '{text}'") from None


def parse_delay_count(args: Sequence[str]) -> Tuple[int, int]:
    """Read the optional positional "delay [count]" arguments."""
    delay, count = DELAY_DEFAULT, COUNT_DEFAULT
    remaining = iter(args)

    text = next(remaining, None)
    if text is not None:
        delay = _parse_int(text)
        if delay == 0:
            raise PluginError("delay must be positive integer")
        if delay < 0 or delay > DELAY_MAX:
            raise PluginError(f"too large delay value (greater than {DELAY_MAX})")

    text = next(remaining, None)
    if text is not None:
        count = _parse_int(text)
        if count < 0 or count > COUNT_MAX:
            raise PluginError(f"too large count value (greater than {COUNT_MAX})")

    return delay, count


def run_plugin(
    body: Callable[[Optional[Sequence[str]]], State],
    argv: Optional[Sequence[str]],
) -> State:
    """Run a plugin body and turn its outcome into a plugin state."""
    try:
        return State(body(argv))
    except SystemExit as exc:
        return State.OK if exc.code in (None, 0) else State.UNKNOWN
    except PluginError as exc:
        print(exc, file=sys.stderr)
        return exc.state