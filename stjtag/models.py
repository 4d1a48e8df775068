"""Plain data types shared across stjtag."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class Verbosity(IntEnum):
    """How much a session reports. Ordered, so ``>=`` comparisons work."""

    QUIET = 0
    NORMAL = 1
    DETAILED = 2
    DIAGNOSTIC = 3

    @classmethod
    def parse(cls, value: "str | int | Verbosity") -> "Verbosity":
        """Accept an enum member, its integer value, or a case-insensitive name."""
        if isinstance(value, Verbosity):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            names = ", ".join(m.name.lower() for m in cls)
            raise ValueError(f"Unknown verbosity: {value!r}. Expected one of: {names}") from None


@dataclass(frozen=True)
class DeviceInfo:
    """Target details reported by a successful connect."""

    device_id: str
    device_name: str
    device_cpu: str
    board_name: Optional[str] = None


@dataclass(frozen=True)
class InvocationResult:
    """Captured output of one STM32_Programmer_CLI run.

    ``error_cause`` is derived from this run's stdout only.
    """

    arguments: tuple[str, ...]
    stdout: str
    stderr: str = ""
    returncode: int = 0
    error_cause: str = ""

    @property
    def command_line(self) -> str:
        return shlex.join(self.arguments)

