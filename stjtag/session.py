"""
Device session for one ST-LINK probe.

A session binds to exactly one probe serial for its lifetime and drives it
through STM32_Programmer_CLI:

    UNBOUND -> CONNECTING -> CONNECTED -> (ERASING) -> PROGRAMMING -> IDLE

FAILED is reachable from any working state. A device failure (erase,
programming, reset) leaves the session usable; the next operation starts
from FAILED like it would from IDLE.

Usage:
    with open_session(erase_pending=True) as session:
        print(session.describe())
        code = session.program_images(["nanoCLR.hex"])
        if code is ResultCode.OK:
            session.reset_mcu()
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Optional, Sequence

from stjtag import classifier, flashing, programmer as cli_args
from stjtag.errors import ConnectFailedError, NoProbeFoundError, ToolExecutionError
from stjtag.models import DeviceInfo, InvocationResult, Verbosity
from stjtag.probe_lock import ProbeLock
from stjtag.programmer import CubeProgrammer
from stjtag.results import ResultCode

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of a DeviceSession."""

    UNBOUND = "unbound"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERASING = "erasing"
    PROGRAMMING = "programming"
    IDLE = "idle"
    FAILED = "failed"


_READY = {SessionState.CONNECTED, SessionState.IDLE, SessionState.FAILED}

_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.UNBOUND: {SessionState.CONNECTING},
    SessionState.CONNECTING: {SessionState.CONNECTED, SessionState.FAILED},
    SessionState.ERASING: {SessionState.IDLE, SessionState.FAILED},
    SessionState.PROGRAMMING: {SessionState.IDLE, SessionState.FAILED},
    **{
        state: {SessionState.ERASING, SessionState.PROGRAMMING, SessionState.IDLE, SessionState.FAILED}
        for state in _READY
    },
}


def list_probes(programmer: Optional[CubeProgrammer] = None) -> list[str]:
    """Return the serial numbers of all connected ST-LINK probes, in tool order."""
    programmer = programmer or CubeProgrammer()
    result = programmer.invoke(cli_args.list_args())
    serials = classifier.parse_probe_serials(result.stdout)
    logger.debug("Found %d ST-LINK probe(s): %s", len(serials), serials)
    return serials


class DeviceSession:
    """A connection to one target through one ST-LINK probe.

    Construct with :meth:`open` (or :func:`open_session`), which binds the
    probe and runs the hot-plug connect. Every operation spawns a fresh
    programmer process.

    Attributes:
        probe_id: Serial of the bound probe.
        device: Details parsed from the connect response, or None if the
            tool did not report them.
        verbosity: How much progress and diagnostic output to log.
        erase_pending: When True, the next flash request mass-erases the
            target first and clears this flag.
        last_result: Output of the invocation made by the most recent
            operation, or None if that operation never reached the tool.
    """

    def __init__(
        self,
        probe_id: str,
        programmer: Optional[CubeProgrammer] = None,
        *,
        verbosity: Verbosity = Verbosity.NORMAL,
        erase_pending: bool = False,
    ):
        self._probe_id = probe_id
        self.programmer = programmer or CubeProgrammer()
        self.verbosity = Verbosity.parse(verbosity)
        self.erase_pending = erase_pending
        self.device: Optional[DeviceInfo] = None
        self.last_result: Optional[InvocationResult] = None
        self._state = SessionState.UNBOUND
        self._lock: Optional[ProbeLock] = None

    @classmethod
    def open(
        cls,
        probe_id: Optional[str] = None,
        programmer: Optional[CubeProgrammer] = None,
        *,
        verbosity: Verbosity = Verbosity.NORMAL,
        erase_pending: bool = False,
        exclusive: bool = False,
    ) -> "DeviceSession":
        """Bind to a probe and connect to its target.

        Args:
            probe_id: Probe serial. The first enumerated probe when omitted.
            programmer: Invoker to use; a default CubeProgrammer otherwise.
            verbosity: Reporting level.
            erase_pending: Mass erase before the first flash request.
            exclusive: Hold a cross-process lock on the probe until
                :meth:`close`.

        Raises:
            NoProbeFoundError: No probe id given and none connected.
            ConnectFailedError: The connect response reported an error.
            ProbeBusyError: ``exclusive`` and another process holds the probe.
            ToolExecutionError: The programmer could not be launched.
        """
        programmer = programmer or CubeProgrammer()

        if not probe_id:
            probes = list_probes(programmer)
            if not probes:
                raise NoProbeFoundError()
            probe_id = probes[0]

        session = cls(probe_id, programmer, verbosity=verbosity, erase_pending=erase_pending)
        if exclusive:
            session._lock = ProbeLock(probe_id)
            session._lock.acquire()
        try:
            session.connect()
        except BaseException:
            session.close()
            raise
        return session

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def probe_id(self) -> str:
        return self._probe_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def board_name(self) -> Optional[str]:
        return self.device.board_name if self.device else None

    @property
    def device_id(self) -> Optional[str]:
        return self.device.device_id if self.device else None

    @property
    def device_name(self) -> Optional[str]:
        return self.device.device_name if self.device else None

    @property
    def device_cpu(self) -> Optional[str]:
        return self.device.device_cpu if self.device else None

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Invalid session transition {self._state.value} -> {new_state.value} "
                f"for probe {self._probe_id}"
            )
        logger.debug("Session %s: %s -> %s", self._probe_id, self._state.value, new_state.value)
        self._state = new_state

    def _require_ready(self, operation: str) -> None:
        if self._state not in _READY:
            raise RuntimeError(f"Cannot {operation}: session is {self._state.value}")

    def _run(self, arguments: list[str]) -> InvocationResult:
        try:
            result = self.programmer.invoke(arguments)
        except ToolExecutionError:
            self._state = SessionState.FAILED
            raise
        self.last_result = result
        return result

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _progress(self, message: str, *args) -> None:
        if self.verbosity >= Verbosity.NORMAL:
            logger.info(message, *args)

    def _detail(self, message: str, *args) -> None:
        if self.verbosity >= Verbosity.DETAILED:
            logger.info(message, *args)

    def _report_failure(self, result: InvocationResult, code: ResultCode) -> None:
        if self.verbosity == Verbosity.DIAGNOSTIC:
            logger.info(">>>>>>>>\n%s\n>>>>>>>>", result.stdout.rstrip())
        if result.error_cause:
            logger.error("%s: %s", code.description, result.error_cause)
        else:
            logger.error("%s", code.description)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def connect(self) -> DeviceInfo | None:
        """Hot-plug connect over SWD and record the target details.

        Raises:
            ConnectFailedError: The tool output carries an error marker.
        """
        self._transition(SessionState.CONNECTING)
        result = self._run(cli_args.connect_args(self._probe_id))

        if not classifier.connect_succeeded(result.stdout):
            self._transition(SessionState.FAILED)
            self._report_failure(result, ResultCode.CONNECT_FAILED)
            raise ConnectFailedError(self._probe_id, result.error_cause, result.stdout)

        self.device = classifier.parse_connect_output(result.stdout)
        if self.device is None:
            logger.warning("Connected to %s but the tool reported no device details", self._probe_id)
        self._transition(SessionState.CONNECTED)
        self._detail("Connected to %s", self.device_name or self._probe_id)
        return self.device

    def mass_erase(self) -> ResultCode:
        """Erase the whole flash. Always runs, whether or not an erase is pending."""
        self.last_result = None
        self._require_ready("mass erase")
        self._transition(SessionState.ERASING)
        self._progress("Mass erase device...")

        result = self._run(cli_args.mass_erase_args(self._probe_id))

        if not classifier.mass_erase_succeeded(result.stdout):
            # erase_pending stays set so the next flash request retries it
            self._transition(SessionState.FAILED)
            self._report_failure(result, ResultCode.MASS_ERASE_FAILED)
            return ResultCode.MASS_ERASE_FAILED

        self.erase_pending = False
        self._transition(SessionState.IDLE)
        self._progress("Mass erase device... OK")
        return ResultCode.OK

    def reset_mcu(self) -> ResultCode:
        """Reset the target MCU."""
        self.last_result = None
        self._require_ready("reset MCU")
        self._progress("Reset MCU on device...")

        result = self._run(cli_args.reset_args(self._probe_id))

        if classifier.has_error(result.stdout):
            self._transition(SessionState.FAILED)
            self._report_failure(result, ResultCode.CONNECT_FAILED)
            return ResultCode.CONNECT_FAILED

        if not classifier.reset_confirmed(result.stdout):
            self._transition(SessionState.FAILED)
            self._report_failure(result, ResultCode.RESET_FAILED)
            return ResultCode.RESET_FAILED

        self._transition(SessionState.IDLE)
        self._progress("Reset MCU on device... OK")
        return ResultCode.OK

    def program_image(self, path: str) -> ResultCode:
        """Program one self-describing image (HEX, ELF, SREC)."""
        return self._program(
            cli_args.write_image_args(self._probe_id, path),
            classifier.image_programmed,
            os.path.basename(path),
        )

    def program_binary(self, path: str, address: str) -> ResultCode:
        """Program one raw binary at ``address`` (``0x``-prefixed hex)."""
        return self._program(
            cli_args.write_binary_args(self._probe_id, path, address),
            classifier.binary_programmed,
            f"{os.path.basename(path)} @ {address}",
        )

    def _program(self, arguments: list[str], succeeded, label: str) -> ResultCode:
        self.last_result = None
        self._require_ready("program")
        self._transition(SessionState.PROGRAMMING)
        self._detail("%s", label)

        result = self._run(arguments)

        if not succeeded(result.stdout):
            self._transition(SessionState.FAILED)
            self._report_failure(result, ResultCode.PROGRAMMING_FAILED)
            return ResultCode.PROGRAMMING_FAILED

        self._transition(SessionState.IDLE)
        return ResultCode.OK

    def program_images(self, paths: Sequence[str]) -> ResultCode:
        """Program images in order, stopping at the first failure."""
        return flashing.flash_images(self, paths)

    def program_binaries(self, paths: Sequence[str], addresses: Sequence[str]) -> ResultCode:
        """Program raw binaries at their addresses, stopping at the first failure."""
        return flashing.flash_binaries(self, paths, addresses)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the probe lock, if one is held."""
        if self._lock is not None:
            self._lock.release()
            self._lock = None

    def __enter__(self) -> "DeviceSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def describe(self) -> str:
        """Multi-line summary of the connected target."""
        lines = []
        if self.device_name:
            lines.append(f"Device: {self.device_name}")
        if self.board_name:
            lines.append(f"Board: {self.board_name}")
        lines.append(f"CPU: {self.device_cpu or ''}")
        lines.append(f"Device ID: {self.device_id or ''}")
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"DeviceSession(probe_id={self._probe_id!r}, state={self._state.value})"


def open_session(
    probe_id: Optional[str] = None,
    *,
    programmer: Optional[CubeProgrammer] = None,
    verbosity: Verbosity = Verbosity.NORMAL,
    erase_pending: bool = False,
    exclusive: bool = False,
) -> DeviceSession:
    """Open a session on ``probe_id`` (or the first connected probe)."""
    return DeviceSession.open(
        probe_id,
        programmer,
        verbosity=verbosity,
        erase_pending=erase_pending,
        exclusive=exclusive,
    )
