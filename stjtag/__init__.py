"""
stjtag - flash STM32 targets through an ST-LINK probe.

Drives STM32_Programmer_CLI as a subprocess and turns its text output into
result codes.
"""

from .results import ResultCode
from .errors import (
    StJtagError,
    ToolExecutionError,
    NoProbeFoundError,
    ConnectFailedError,
    ProbeBusyError,
)
from .models import DeviceInfo, InvocationResult, Verbosity
from .programmer import CubeProgrammer
from .flashing import FlashRequest
from .session import DeviceSession, SessionState, list_probes, open_session

__version__ = "1.0.0"

__all__ = [
    "ResultCode",
    "StJtagError",
    "ToolExecutionError",
    "NoProbeFoundError",
    "ConnectFailedError",
    "ProbeBusyError",
    "DeviceInfo",
    "InvocationResult",
    "Verbosity",
    "CubeProgrammer",
    "FlashRequest",
    "DeviceSession",
    "SessionState",
    "list_probes",
    "open_session",
]
