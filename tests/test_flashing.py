"""Tests for flash request validation and sequencing."""

from __future__ import annotations

import pytest

from stjtag import ResultCode, SessionState
from stjtag.flashing import FlashRequest, check_address, check_addresses
from stjtag.session import open_session

from stjtag_fakes import (
    BINARY_OK,
    CONNECT_OK,
    ERASE_NO_MARKER,
    ERASE_OK,
    IMAGE_OK,
    PROGRAM_FAIL,
    SERIAL_A,
    FakeProgrammer,
)


def _session(*responses, erase_pending: bool = False):
    fake = FakeProgrammer(CONNECT_OK, *responses)
    session = open_session(SERIAL_A, programmer=fake, erase_pending=erase_pending)
    # Only count invocations made after connect
    fake.calls.clear()
    return session, fake


class TestAddressValidation:
    @pytest.mark.parametrize("address", ["0x08000000", "0x0", "0xdeadBEEF", "0x080C0000", "0xFFFFFFFF"])
    def test_valid(self, address):
        assert check_address(address) is ResultCode.OK

    @pytest.mark.parametrize("address", ["", None])
    def test_missing(self, address):
        assert check_address(address) is ResultCode.MISSING_ADDRESS

    @pytest.mark.parametrize(
        "address",
        ["08000000", "0X08000000", "0x", "0xZZ", "0x0800_0000", "0x 8000", "0x0x10", "x08000000", "0x123456789"],
    )
    def test_malformed(self, address):
        assert check_address(address) is ResultCode.MALFORMED_ADDRESS

    def test_count_mismatch(self):
        assert check_addresses(["a", "b"], ["0x0"]) is ResultCode.ADDRESS_COUNT_MISMATCH

    def test_first_bad_address_wins(self):
        code = check_addresses(["a", "b", "c"], ["0x0", "", "nope"])
        assert code is ResultCode.MISSING_ADDRESS

    def test_request_checks_files_before_addresses(self, tmp_path):
        request = FlashRequest([str(tmp_path / "missing.bin")], ["bad"])
        assert request.validate() is ResultCode.FILE_NOT_FOUND


class TestImages:
    def test_all_files_programmed_in_order(self, firmware_files):
        session, fake = _session(IMAGE_OK, IMAGE_OK, IMAGE_OK)

        assert session.program_images(firmware_files) is ResultCode.OK
        assert [c[-1] for c in fake.calls] == firmware_files
        assert all("-w" in c and "mode=UR" in c for c in fake.calls)
        assert session.state is SessionState.IDLE

    def test_missing_file_makes_no_invocation(self, firmware_files, tmp_path):
        session, fake = _session()
        files = [firmware_files[0], str(tmp_path / "missing.hex")]

        assert session.program_images(files) is ResultCode.FILE_NOT_FOUND
        assert fake.calls == []

    def test_stops_at_first_failure(self, firmware_files):
        session, fake = _session(IMAGE_OK, PROGRAM_FAIL, IMAGE_OK)

        assert session.program_images(firmware_files) is ResultCode.PROGRAMMING_FAILED
        assert len(fake.calls) == 2
        assert firmware_files[2] not in fake.calls[-1]
        assert session.last_result.error_cause == "failed to erase memory"

    def test_validation_failure_clears_previous_result(self, tmp_path):
        session, fake = _session(ERASE_NO_MARKER + "Error: flash locked\n")
        assert session.mass_erase() is ResultCode.MASS_ERASE_FAILED
        assert session.last_result.error_cause == "flash locked"

        assert session.program_images([str(tmp_path / "missing.hex")]) is ResultCode.FILE_NOT_FOUND
        assert session.last_result is None
        assert len(fake.calls) == 1

    def test_image_needs_download_marker(self, firmware_files):
        session, _ = _session(CONNECT_OK)
        assert session.program_images(firmware_files[:1]) is ResultCode.PROGRAMMING_FAILED


class TestBinaries:
    ADDRESSES = ["0x08000000", "0x08004000", "0x080C0000"]

    def test_all_binaries_programmed_at_addresses(self, binary_files):
        session, fake = _session(BINARY_OK, BINARY_OK, BINARY_OK)

        assert session.program_binaries(binary_files, self.ADDRESSES) is ResultCode.OK
        assert [c[-2:] for c in fake.calls] == [list(p) for p in zip(binary_files, self.ADDRESSES)]

    def test_missing_file_makes_no_invocation(self, binary_files, tmp_path):
        session, fake = _session(erase_pending=True)
        files = binary_files[:2] + [str(tmp_path / "missing.bin")]

        assert session.program_binaries(files, self.ADDRESSES) is ResultCode.FILE_NOT_FOUND
        assert fake.calls == []
        assert session.erase_pending is True

    def test_address_count_mismatch_makes_no_invocation(self, binary_files):
        session, fake = _session(erase_pending=True)

        code = session.program_binaries(binary_files, self.ADDRESSES[:2])
        assert code is ResultCode.ADDRESS_COUNT_MISMATCH
        assert fake.calls == []

    @pytest.mark.parametrize(
        "bad, expected",
        [("", ResultCode.MISSING_ADDRESS), ("08004000", ResultCode.MALFORMED_ADDRESS), ("0xG", ResultCode.MALFORMED_ADDRESS)],
    )
    def test_bad_address_makes_no_invocation(self, binary_files, bad, expected):
        session, fake = _session()
        addresses = [self.ADDRESSES[0], bad, self.ADDRESSES[2]]

        assert session.program_binaries(binary_files, addresses) is expected
        assert fake.calls == []

    def test_binary_needs_programming_complete(self, binary_files):
        session, fake = _session(IMAGE_OK, BINARY_OK)

        code = session.program_binaries(binary_files[:2], self.ADDRESSES[:2])
        assert code is ResultCode.PROGRAMMING_FAILED
        assert len(fake.calls) == 1


class TestPendingErase:
    def test_erase_runs_once_before_first_request(self, firmware_files):
        session, fake = _session(ERASE_OK, IMAGE_OK, IMAGE_OK, erase_pending=True)

        assert session.program_images(firmware_files[:1]) is ResultCode.OK
        assert session.erase_pending is False
        assert session.program_images(firmware_files[1:2]) is ResultCode.OK

        assert len(fake.calls_with("-e")) == 1
        assert fake.calls[0][-2:] == ["-e", "all"]

    def test_failed_erase_programs_nothing(self, firmware_files):
        session, fake = _session(ERASE_NO_MARKER, erase_pending=True)

        assert session.program_images(firmware_files) is ResultCode.MASS_ERASE_FAILED
        assert len(fake.calls) == 1
        assert fake.calls_with("-w") == []
        assert session.erase_pending is True

    def test_failed_erase_is_retried_next_request(self, binary_files):
        session, fake = _session(ERASE_NO_MARKER, ERASE_OK, BINARY_OK, erase_pending=True)

        assert session.program_binaries(binary_files[:1], ["0x08000000"]) is ResultCode.MASS_ERASE_FAILED
        assert session.program_binaries(binary_files[:1], ["0x08000000"]) is ResultCode.OK
        assert len(fake.calls_with("-e")) == 2

    def test_no_erase_when_not_pending(self, firmware_files):
        session, fake = _session(IMAGE_OK)

        assert session.program_images(firmware_files[:1]) is ResultCode.OK
        assert fake.calls_with("-e") == []
