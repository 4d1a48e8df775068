"""Flash request validation and sequencing.

Both request kinds share one policy:

1. Every file must exist. Binaries also need one valid ``0x`` address per
   file. Nothing touches the hardware until the whole request validates.
2. A pending mass erase runs first; if it fails nothing is programmed.
3. Files are programmed in order and the first failure ends the request.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from stjtag.models import Verbosity
from stjtag.results import ResultCode

if TYPE_CHECKING:
    from stjtag.session import DeviceSession

logger = logging.getLogger(__name__)

HEX_PREFIX = "0x"
MAX_ADDRESS_DIGITS = 8


def check_files(files: Sequence[str]) -> ResultCode:
    missing = [f for f in files if not os.path.isfile(f)]
    if missing:
        logger.error("Couldn't find file(s): %s", ", ".join(missing))
        return ResultCode.FILE_NOT_FOUND
    return ResultCode.OK


def check_address(address: Optional[str]) -> ResultCode:
    """Validate one load address: ``0x`` plus one to eight hex digits."""
    if not address:
        return ResultCode.MISSING_ADDRESS
    if not address.startswith(HEX_PREFIX):
        return ResultCode.MALFORMED_ADDRESS

    digits = address[len(HEX_PREFIX):]
    if not digits or len(digits) > MAX_ADDRESS_DIGITS:
        return ResultCode.MALFORMED_ADDRESS
    # int(..., 16) would also accept "_", whitespace and a second "0x"
    if any(c not in "0123456789abcdefABCDEF" for c in digits):
        return ResultCode.MALFORMED_ADDRESS
    return ResultCode.OK


def check_addresses(files: Sequence[str], addresses: Sequence[str]) -> ResultCode:
    if len(files) != len(addresses):
        logger.error("Got %d file(s) but %d address(es)", len(files), len(addresses))
        return ResultCode.ADDRESS_COUNT_MISMATCH

    for address in addresses:
        code = check_address(address)
        if code is not ResultCode.OK:
            logger.error("%s: %r", code.description, address)
            return code
    return ResultCode.OK


@dataclass
class FlashRequest:
    """Firmware files plus, for raw binaries, their load addresses."""

    files: list[str]
    addresses: Optional[list[str]] = None

    @property
    def is_binary(self) -> bool:
        return self.addresses is not None

    def validate(self) -> ResultCode:
        code = check_files(self.files)
        if code is not ResultCode.OK or not self.is_binary:
            return code
        return check_addresses(self.files, self.addresses)


def execute(session: "DeviceSession", request: FlashRequest) -> ResultCode:
    """Validate ``request`` and program it through ``session``."""
    # Validation failures must not report a previous invocation's output
    session.last_result = None
    code = request.validate()
    if code is not ResultCode.OK:
        return code

    if session.erase_pending:
        # mass_erase() clears erase_pending, so this runs once per session
        code = session.mass_erase()
        if code is not ResultCode.OK:
            return code

    if session.verbosity >= Verbosity.NORMAL:
        logger.info("Flashing device...")

    if request.is_binary:
        for path, address in zip(request.files, request.addresses):
            code = session.program_binary(path, address)
            if code is not ResultCode.OK:
                return code
    else:
        for path in request.files:
            code = session.program_image(path)
            if code is not ResultCode.OK:
                return code

    if session.verbosity >= Verbosity.NORMAL:
        logger.info("Flashing completed")
    return ResultCode.OK


def flash_images(session: "DeviceSession", files: Sequence[str]) -> ResultCode:
    """Program HEX/ELF/SREC images in order."""
    return execute(session, FlashRequest(list(files)))


def flash_binaries(
    session: "DeviceSession", files: Sequence[str], addresses: Sequence[str]
) -> ResultCode:
    """Program raw binaries, each at its matching address."""
    return execute(session, FlashRequest(list(files), list(addresses)))
