"""Result codes returned by every public flashing operation.

Values double as process exit statuses for the ``stjtag`` CLI.
"""

from __future__ import annotations

from enum import IntEnum


class ResultCode(IntEnum):
    """Outcome of a session or orchestration operation."""

    OK = 0
    NO_PROBE_FOUND = 5001
    CONNECT_FAILED = 5002
    FILE_NOT_FOUND = 5003
    TOOL_EXECUTION_FAILED = 5004
    MASS_ERASE_FAILED = 5005
    PROGRAMMING_FAILED = 5006
    MISSING_ADDRESS = 5007
    MALFORMED_ADDRESS = 5008
    ADDRESS_COUNT_MISMATCH = 5009
    RESET_FAILED = 5010

    @property
    def ok(self) -> bool:
        return self is ResultCode.OK

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ResultCode.OK: "OK",
    ResultCode.NO_PROBE_FOUND: "No ST-LINK probe found",
    ResultCode.CONNECT_FAILED: "Error connecting to JTAG device",
    ResultCode.FILE_NOT_FOUND: "Couldn't find firmware file",
    ResultCode.TOOL_EXECUTION_FAILED: "Error executing STM32 Programmer CLI",
    ResultCode.MASS_ERASE_FAILED: "Error performing mass erase",
    ResultCode.PROGRAMMING_FAILED: "Error flashing device",
    ResultCode.MISSING_ADDRESS: "Missing flash address",
    ResultCode.MALFORMED_ADDRESS: "Invalid flash address (expected 0x-prefixed hex)",
    ResultCode.ADDRESS_COUNT_MISMATCH: "Flash address count doesn't match file count",
    ResultCode.RESET_FAILED: "MCU reset not confirmed",
}
