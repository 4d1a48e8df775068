"""Hardware smoke tests against a real ST-LINK and STM32CubeProgrammer.

Run with ``pytest --hw``. Optional environment:
- STJTAG_PROGRAMMER: path to STM32_Programmer_CLI
- STJTAG_PROBE: probe serial (first found otherwise)
- STJTAG_HW_FIRMWARE: HEX image to flash in test_flash_and_reset
"""

from __future__ import annotations

import os
import shutil

import pytest

from stjtag import ResultCode, list_probes, open_session
from stjtag.config import find_programmer_cli
from stjtag.programmer import CubeProgrammer

pytestmark = pytest.mark.hardware

# Read at import time: the autouse env fixture clears these per test
_PROGRAMMER = os.environ.get("STJTAG_PROGRAMMER")
_PROBE = os.environ.get("STJTAG_PROBE")
_FIRMWARE = os.environ.get("STJTAG_HW_FIRMWARE")


@pytest.fixture
def programmer() -> CubeProgrammer:
    cli = _PROGRAMMER or find_programmer_cli()
    if not os.path.isfile(cli) and not shutil.which(cli):
        pytest.skip("STM32_Programmer_CLI not found")
    return CubeProgrammer(cli)


@pytest.fixture
def probe_id(programmer) -> str:
    probes = list_probes(programmer)
    if not probes:
        pytest.skip("No ST-LINK connected")
    return _PROBE or probes[0]


def test_connect_reports_device(programmer, probe_id):
    with open_session(probe_id, programmer=programmer, exclusive=True) as session:
        assert session.device_id
        assert session.device_cpu.startswith("Cortex-M")


def test_flash_and_reset(programmer, probe_id):
    if not _FIRMWARE:
        pytest.skip("STJTAG_HW_FIRMWARE not set")

    with open_session(probe_id, programmer=programmer, erase_pending=True, exclusive=True) as session:
        assert session.program_images([_FIRMWARE]) is ResultCode.OK
        assert session.reset_mcu() is ResultCode.OK
