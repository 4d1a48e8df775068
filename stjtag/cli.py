"""stjtag command-line front end.

Subcommands:
- list: Show connected ST-LINK probe serials
- info: Connect and describe the target
- flash-hex: Program HEX/ELF/SREC images
- flash-bin: Program raw binaries at addresses
- erase: Mass erase the target
- reset: Reset the target MCU

Exit status is the ResultCode value (0 on success).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional

from stjtag import __version__
from stjtag.config import FlasherConfig, load_config
from stjtag.errors import StJtagError
from stjtag.models import Verbosity
from stjtag.programmer import CubeProgrammer
from stjtag.results import ResultCode
from stjtag.session import DeviceSession, list_probes, open_session

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Verbosity.QUIET: logging.WARNING,
    Verbosity.NORMAL: logging.INFO,
    Verbosity.DETAILED: logging.INFO,
    Verbosity.DIAGNOSTIC: logging.DEBUG,
}


def _print(obj: Any, *, json_mode: bool) -> None:
    if json_mode:
        print(json.dumps(obj, indent=2, sort_keys=True))
    else:
        if isinstance(obj, str):
            print(obj)
        else:
            print(json.dumps(obj, indent=2, sort_keys=True))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stjtag", description="Flash STM32 targets via ST-LINK")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Output machine-parseable JSON")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--programmer", default=None, help="Path to STM32_Programmer_CLI")
    parser.add_argument(
        "-v",
        "--verbosity",
        default=None,
        choices=[v.name.lower() for v in Verbosity],
        help="Reporting level (default: from config, else normal)",
    )

    # Options shared by every subcommand that talks to a target
    target = argparse.ArgumentParser(add_help=False)
    target.add_argument("--probe", default=None, help="ST-LINK serial (default: first found)")
    target.add_argument("--exclusive", action="store_true", help="Lock the probe against other processes")

    flash_opts = argparse.ArgumentParser(add_help=False)
    flash_opts.add_argument("--mass-erase", action="store_true", help="Mass erase before flashing")
    flash_opts.add_argument("--reset", action="store_true", help="Reset the MCU after flashing")

    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="List connected ST-LINK probes")
    sub.add_parser("info", parents=[target], help="Connect and show target details")

    p_hex = sub.add_parser("flash-hex", parents=[target, flash_opts], help="Program HEX/ELF/SREC images")
    p_hex.add_argument("files", nargs="+")

    p_bin = sub.add_parser("flash-bin", parents=[target, flash_opts], help="Program raw binaries")
    p_bin.add_argument("files", nargs="+")
    p_bin.add_argument(
        "--address",
        dest="addresses",
        action="append",
        default=[],
        help="Load address (0x...), once per file, in file order",
    )

    sub.add_parser("erase", parents=[target], help="Mass erase the target")
    sub.add_parser("reset", parents=[target], help="Reset the target MCU")

    return parser


def _configure_logging(verbosity: Verbosity) -> None:
    logging.basicConfig(
        level=_LOG_LEVELS[verbosity],
        format="%(message)s" if verbosity < Verbosity.DIAGNOSTIC else "%(levelname)s %(name)s: %(message)s",
    )


def _session_payload(session: DeviceSession) -> dict[str, Any]:
    return {
        "probe_id": session.probe_id,
        "board": session.board_name,
        "device_id": session.device_id,
        "device_name": session.device_name,
        "device_cpu": session.device_cpu,
    }


def _result_payload(code: ResultCode, session: Optional[DeviceSession] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": code.ok,
        "code": int(code),
        "result": code.name,
        "message": code.description,
    }
    if session is not None:
        payload["probe_id"] = session.probe_id
        last = session.last_result
        if not code.ok and last is not None:
            payload["error_cause"] = last.error_cause
            if session.verbosity >= Verbosity.DIAGNOSTIC:
                payload["output"] = last.stdout
    return payload


def cmd_list(*, programmer: CubeProgrammer, json_mode: bool) -> int:
    probes = list_probes(programmer)
    if json_mode:
        _print({"probes": probes}, json_mode=True)
    elif probes:
        _print("\n".join(probes), json_mode=False)
    else:
        _print("No ST-LINK probes found", json_mode=False)
    return int(ResultCode.OK)


def cmd_target(args: argparse.Namespace, cfg: FlasherConfig, programmer: CubeProgrammer) -> int:
    mass_erase = getattr(args, "mass_erase", False) or cfg.mass_erase
    with open_session(
        args.probe or cfg.probe_id,
        programmer=programmer,
        verbosity=cfg.verbosity,
        erase_pending=mass_erase and args.cmd in ("flash-hex", "flash-bin"),
        exclusive=args.exclusive,
    ) as session:
        if args.cmd == "info":
            if args.json:
                _print(_session_payload(session), json_mode=True)
            else:
                _print(session.describe().rstrip(), json_mode=False)
            return int(ResultCode.OK)

        if args.cmd == "erase":
            code = session.mass_erase()
        elif args.cmd == "reset":
            code = session.reset_mcu()
        elif args.cmd == "flash-hex":
            code = session.program_images(args.files)
        else:
            code = session.program_binaries(args.files, args.addresses)

        if code.ok and getattr(args, "reset", False):
            code = session.reset_mcu()

        if args.json:
            _print(_result_payload(code, session), json_mode=True)
        elif not code.ok:
            _print(f"ERROR {int(code)}: {code.description}", json_mode=False)
        return int(code)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ``stjtag`` CLI.

    Args:
        argv: Argument list to parse. Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code: the ResultCode value, 0 on success.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (OSError, ValueError) as e:
        _print({"error": str(e)}, json_mode=args.json)
        return 2
    if args.verbosity:
        cfg.verbosity = Verbosity.parse(args.verbosity)
    if args.programmer:
        cfg.programmer_path = args.programmer

    _configure_logging(cfg.verbosity)
    programmer = CubeProgrammer(cfg.resolve_programmer())

    try:
        if args.cmd == "list":
            return cmd_list(programmer=programmer, json_mode=args.json)
        return cmd_target(args, cfg, programmer)
    except StJtagError as e:
        _print({"error": str(e), "code": int(e.code), "result": e.code.name}, json_mode=args.json)
        return int(e.code)


if __name__ == "__main__":
    sys.exit(main())
