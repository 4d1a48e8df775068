"""Shared pytest configuration and fixtures for stjtag tests."""

from __future__ import annotations

from typing import Callable

import pytest

from stjtag_fakes import FakeProgrammer


def pytest_addoption(parser):
    parser.addoption(
        "--hw",
        action="store_true",
        default=False,
        help="Run hardware-in-the-loop tests (requires an ST-LINK with a target attached)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "hardware: requires a physical ST-LINK probe")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--hw"):
        return
    skip_hw = pytest.mark.skip(reason="needs --hw")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hw)


@pytest.fixture
def fake_programmer() -> Callable[..., FakeProgrammer]:
    """Factory for FakeProgrammer instances."""
    return FakeProgrammer


@pytest.fixture
def firmware_files(tmp_path) -> list[str]:
    """Three small HEX files, in flashing order."""
    paths = []
    for name in ("nanoBooter.hex", "nanoCLR.hex", "deploy.hex"):
        p = tmp_path / name
        p.write_text(":00000001FF\n")
        paths.append(str(p))
    return paths


@pytest.fixture
def binary_files(tmp_path) -> list[str]:
    paths = []
    for name in ("nanoBooter.bin", "nanoCLR.bin", "deploy.bin"):
        p = tmp_path / name
        p.write_bytes(b"\x00\x01\x02\x03" * 16)
        paths.append(str(p))
    return paths


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep probe locks and config lookups inside the test's tmp dir."""
    monkeypatch.setenv("STJTAG_RUN_DIR", str(tmp_path / "run"))
    monkeypatch.setenv("STJTAG_CONFIG", str(tmp_path / "no-config.yaml"))
    for var in ("STJTAG_PROGRAMMER", "STJTAG_VERBOSITY", "STJTAG_PROBE"):
        monkeypatch.delenv(var, raising=False)
