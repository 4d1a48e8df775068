"""
Output classifier for STM32_Programmer_CLI.

The programmer has no machine-readable output mode, so every decision about
success or failure is made by matching fixed markers in its stdout. All of
those markers live in this module; nothing else in stjtag looks at raw
tool output.

Successful connect output looks like::

    ST-LINK SN  : 066CFF535752877167012515
    ST-LINK FW  : V2J37M27
    Board       : NUCLEO-F429ZI
    Voltage     : 3.24V
    ...
    Device ID   : 0x419
    Revision ID : Rev 3
    Device name : STM32F42xxx/F43xxx
    Flash size  : 2 MBytes
    Device type : MCU
    Device CPU  : Cortex-M4

Successful ``--list`` output looks like::

    -------- Connected ST-LINK Probes List --------

    ST-Link Probe 0 :
       ST-LINK SN  : 066CFF535752877167012515
       ST-LINK FW  : V2J37M27
    -----------------------------------------------
"""

from __future__ import annotations

import re
from typing import Optional

from stjtag.models import DeviceInfo

# Any output containing this substring is a failed invocation.
ERROR_MARKER = "Error"

USB_COMM_ERROR_MARKER = "DEV_USB_COMM_ERR"
USB_COMM_ERROR_MESSAGE = "USB communication error. Please unplug and plug again the ST device."

IMAGE_PROGRAMMED_MARKER = "File download complete"
BINARY_PROGRAMMED_MARKER = "Programming Complete."
MASS_ERASE_MARKER = "Mass erase successfully achieved"
RESET_MARKER = "MCU Reset"

PROBE_SERIAL_LENGTH = 24

_PROBE_SERIAL_RE = re.compile(r"ST-LINK SN  :\s(?P<serial>.{%d})" % PROBE_SERIAL_LENGTH)

_ERROR_LINE_RE = re.compile(r"^[ \t]*Error:[ \t]*(?P<error>.+?)[ \t]*$", re.MULTILINE)

# Sections appear in this order; the board line is absent on non-ST boards.
_CONNECT_RE = re.compile(
    r"(?:Board[ \t]*:(?P<board>[^\r\n]*).*?)?"
    r"Device ID[ \t]*:(?P<device_id>[^\r\n]*)"
    r".*?Device name[ \t]*:(?P<device_name>[^\r\n]*)"
    r".*?Device CPU[ \t]*:(?P<device_cpu>[^\r\n]*)",
    re.DOTALL,
)


def has_error(output: str) -> bool:
    """Return True if the output carries the generic error marker."""
    return ERROR_MARKER in output


def extract_error_cause(output: str) -> str:
    """Return a human-readable error cause from the tool output.

    The first ``Error:`` line wins. Without one, a USB communication error
    is reported if the tool flagged it. Otherwise returns an empty string.
    """
    match = _ERROR_LINE_RE.search(output)
    if match:
        return match.group("error").rstrip(".").strip()

    if USB_COMM_ERROR_MARKER in output:
        return USB_COMM_ERROR_MESSAGE

    return ""


def parse_probe_serials(output: str) -> list[str]:
    """Return every ST-LINK serial number in ``--list`` output, in order."""
    return [m.group("serial") for m in _PROBE_SERIAL_RE.finditer(output)]


def parse_connect_output(output: str) -> Optional[DeviceInfo]:
    """Extract device details from a connect response.

    Returns None when the device sections are missing.
    """
    match = _CONNECT_RE.search(output)
    if not match:
        return None

    board = (match.group("board") or "").strip()
    return DeviceInfo(
        device_id=match.group("device_id").strip(),
        device_name=match.group("device_name").strip(),
        device_cpu=match.group("device_cpu").strip(),
        board_name=board or None,
    )


def _succeeded(output: str, marker: str) -> bool:
    return not has_error(output) and marker in output


def connect_succeeded(output: str) -> bool:
    return not has_error(output)


def image_programmed(output: str) -> bool:
    return _succeeded(output, IMAGE_PROGRAMMED_MARKER)


def binary_programmed(output: str) -> bool:
    return _succeeded(output, BINARY_PROGRAMMED_MARKER)


def mass_erase_succeeded(output: str) -> bool:
    return _succeeded(output, MASS_ERASE_MARKER)


def reset_confirmed(output: str) -> bool:
    return _succeeded(output, RESET_MARKER)
