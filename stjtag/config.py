"""
Configuration for stjtag.

Two concerns live here:

- Locating the STM32_Programmer_CLI executable.
- Loading user defaults from a YAML file, with environment overrides.

Config file (default ``~/.config/stjtag/config.yaml``)::

    programmer_path: /opt/st/STM32CubeProgrammer/bin/STM32_Programmer_CLI
    verbosity: detailed
    mass_erase: false
    probe_id: 066CFF535752877167012515
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from stjtag.models import Verbosity

logger = logging.getLogger(__name__)

PROGRAMMER_NAME = "STM32_Programmer_CLI"

ENV_PROGRAMMER = "STJTAG_PROGRAMMER"
ENV_CONFIG = "STJTAG_CONFIG"
ENV_VERBOSITY = "STJTAG_VERBOSITY"
ENV_PROBE = "STJTAG_PROBE"


def _install_search_patterns() -> list[str]:
    home = Path.home()
    return [
        # Linux
        str(home / "STMicroelectronics/STM32Cube/STM32CubeProgrammer/bin/STM32_Programmer_CLI"),
        "/opt/st/STM32CubeProgrammer/bin/STM32_Programmer_CLI",
        "/opt/st/stm32cubeide_*/plugins/com.st.stm32cube.ide.mcu.externaltools.cubeprogrammer.*/tools/bin/STM32_Programmer_CLI",
        # macOS
        "/Applications/STMicroelectronics/STM32Cube/STM32CubeProgrammer/STM32CubeProgrammer.app/Contents/MacOs/bin/STM32_Programmer_CLI",
        "/Applications/STM32CubeIDE.app/Contents/Eclipse/plugins/com.st.stm32cube.ide.mcu.externaltools.cubeprogrammer.*/tools/bin/STM32_Programmer_CLI",
        # Windows
        "C:/Program Files/STMicroelectronics/STM32Cube/STM32CubeProgrammer/bin/STM32_Programmer_CLI.exe",
        "C:/ST/STM32CubeIDE_*/STM32CubeIDE/plugins/com.st.stm32cube.ide.mcu.externaltools.cubeprogrammer.*/tools/bin/STM32_Programmer_CLI.exe",
    ]


def find_programmer_cli() -> str:
    """
    Find the STM32_Programmer_CLI executable.

    Checks ``$STJTAG_PROGRAMMER``, then PATH, then common installation
    locations of STM32CubeProgrammer and STM32CubeIDE.

    Returns:
        Path to STM32_Programmer_CLI, or the bare name if not found
        (launching it will then fail with a tool execution error).
    """
    override = os.environ.get(ENV_PROGRAMMER)
    if override:
        return override

    path = shutil.which(PROGRAMMER_NAME)
    if path:
        return path

    for pattern in _install_search_patterns():
        matches = glob.glob(pattern)
        if matches:
            # Newest version sorts last
            return sorted(matches)[-1]

    logger.debug("%s not found on PATH or in known install locations", PROGRAMMER_NAME)
    return PROGRAMMER_NAME


def default_config_path() -> Path:
    override = os.environ.get(ENV_CONFIG)
    if override:
        return Path(override)
    return Path.home() / ".config" / "stjtag" / "config.yaml"


@dataclass
class FlasherConfig:
    """User defaults for a flashing session."""

    programmer_path: Optional[str] = None
    verbosity: Verbosity = Verbosity.NORMAL
    mass_erase: bool = False
    probe_id: Optional[str] = None

    def resolve_programmer(self) -> str:
        return self.programmer_path or find_programmer_cli()


def _from_mapping(data: dict[str, Any], source: str) -> FlasherConfig:
    known = {f.name for f in fields(FlasherConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s) in {source}: {', '.join(unknown)}")

    cfg = FlasherConfig()
    if data.get("programmer_path"):
        cfg.programmer_path = str(data["programmer_path"])
    if data.get("verbosity") is not None:
        cfg.verbosity = Verbosity.parse(data["verbosity"])
    if "mass_erase" in data:
        if not isinstance(data["mass_erase"], bool):
            raise ValueError(f"mass_erase must be true or false in {source}")
        cfg.mass_erase = data["mass_erase"]
    if data.get("probe_id"):
        cfg.probe_id = str(data["probe_id"])
    return cfg


def load_config(path: Optional[str | Path] = None) -> FlasherConfig:
    """Load configuration from YAML and apply environment overrides.

    A missing file yields defaults. A file that is not a mapping, or has
    unknown keys, raises ``ValueError``.
    """
    config_path = Path(path) if path else default_config_path()

    if config_path.is_file():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid config file (expected mapping): {config_path}")
        cfg = _from_mapping(data, str(config_path))
        logger.debug("Loaded config from %s", config_path)
    else:
        if path:
            logger.warning("Config file %s not found; using defaults", config_path)
        cfg = FlasherConfig()

    if os.environ.get(ENV_PROGRAMMER):
        cfg.programmer_path = os.environ[ENV_PROGRAMMER]
    if os.environ.get(ENV_VERBOSITY):
        cfg.verbosity = Verbosity.parse(os.environ[ENV_VERBOSITY])
    if os.environ.get(ENV_PROBE):
        cfg.probe_id = os.environ[ENV_PROBE]

    return cfg
