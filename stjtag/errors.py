"""Fatal session errors.

Everything that can go wrong *while* flashing is reported as a
:class:`~stjtag.results.ResultCode`. These exceptions cover the cases where
a session could not be set up at all.
"""

from __future__ import annotations

from stjtag.results import ResultCode


class StJtagError(RuntimeError):
    """Base class for fatal stjtag errors."""

    code: ResultCode = ResultCode.CONNECT_FAILED


class ToolExecutionError(StJtagError):
    """Raised when STM32_Programmer_CLI could not be launched."""

    code = ResultCode.TOOL_EXECUTION_FAILED

    def __init__(self, tool: str, reason: str):
        super().__init__(f"Failed to execute {tool}: {reason}")
        self.tool = tool
        self.reason = reason


class NoProbeFoundError(StJtagError):
    """Raised when probe enumeration returns nothing."""

    code = ResultCode.NO_PROBE_FOUND

    def __init__(self, message: str = "No ST-LINK probe found"):
        super().__init__(message)


class ConnectFailedError(StJtagError):
    """Raised when the hot-plug connect to a probe reports an error."""

    code = ResultCode.CONNECT_FAILED

    def __init__(self, probe_id: str, cause: str = "", output: str = ""):
        message = f"Can't connect to JTAG device {probe_id}"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.probe_id = probe_id
        self.cause = cause
        self.output = output


class ProbeBusyError(StJtagError):
    """Raised when another process holds the lock for a probe."""

    code = ResultCode.CONNECT_FAILED

    def __init__(self, probe_id: str, owner_pid: int | None = None):
        message = f"Probe {probe_id} is in use by another process"
        if owner_pid:
            message = f"{message} (PID {owner_pid})"
        super().__init__(message)
        self.probe_id = probe_id
        self.owner_pid = owner_pid
