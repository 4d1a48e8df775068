"""STM32_Programmer_CLI invocation.

Each call spawns a fresh one-shot process; no handle to the tool is kept
between invocations. No timeout is applied; a hung tool blocks the caller.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Optional, Sequence

from stjtag.classifier import extract_error_cause
from stjtag.config import find_programmer_cli
from stjtag.errors import ToolExecutionError
from stjtag.models import InvocationResult

logger = logging.getLogger(__name__)


def _connect_args(probe_id: str, *extra: str) -> list[str]:
    return ["-c", "port=SWD", f"sn={probe_id}", *extra]


def list_args() -> list[str]:
    return ["--list"]


def connect_args(probe_id: str) -> list[str]:
    return _connect_args(probe_id, "HOTPLUG")


def write_image_args(probe_id: str, path: str) -> list[str]:
    return _connect_args(probe_id, "mode=UR") + ["-w", path]


def write_binary_args(probe_id: str, path: str, address: str) -> list[str]:
    return _connect_args(probe_id, "mode=UR") + ["-w", path, address]


def mass_erase_args(probe_id: str) -> list[str]:
    return _connect_args(probe_id, "mode=UR") + ["-e", "all"]


def reset_args(probe_id: str) -> list[str]:
    return _connect_args(probe_id, "mode=UR") + ["-rst"]


class CubeProgrammer:
    """Runs STM32_Programmer_CLI and captures its output.

    Args:
        cli_path: Executable to run. Located with
            :func:`~stjtag.config.find_programmer_cli` when omitted.
    """

    def __init__(self, cli_path: Optional[str] = None):
        cli_path = cli_path or find_programmer_cli()
        # The child runs with cwd=working_dir
        if os.path.dirname(cli_path):
            cli_path = os.path.abspath(cli_path)
        self.cli_path = cli_path

    @property
    def working_dir(self) -> Optional[str]:
        """The tool's install directory, or None when it is resolved via PATH."""
        directory = os.path.dirname(self.cli_path)
        return directory or None

    def invoke(self, arguments: Sequence[str]) -> InvocationResult:
        """Run the programmer with ``arguments`` and wait for it to exit.

        Raises:
            ToolExecutionError: The executable is missing or could not be
                started.
        """
        cmd_list = [self.cli_path, *arguments]
        logger.debug("Running: %s", " ".join(cmd_list))

        try:
            result = subprocess.run(
                cmd_list,
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise ToolExecutionError(self.cli_path, f"tool not found ({e})") from e
        except OSError as e:
            raise ToolExecutionError(self.cli_path, str(e)) from e

        stdout = result.stdout or ""
        stderr = result.stderr or ""
        if stderr:
            logger.debug("%s stderr: %s", os.path.basename(self.cli_path), stderr.strip()[:200])

        return InvocationResult(
            arguments=tuple(arguments),
            stdout=stdout,
            stderr=stderr,
            returncode=result.returncode,
            error_cause=extract_error_cause(stdout),
        )

    def __repr__(self) -> str:
        return f"CubeProgrammer({self.cli_path!r})"
