# main.py
import argparse
import os
import sys
import time
from typing import List, Optional

from pyfiglet import Figlet, FontNotFound

from app_context import AppContext
from config_validation import (
    ConfigValidationError,
    build_client_settings,
    build_daemon_config,
    build_manager,
    load_settings,
)
from loghandler import clear_old_logs, setup_logging
from radio_interface import BaseRadioError
from radios.rigctl import Mode, PowerState, RigctlClient
from rigctld_manager import RigCtldManagerError, exists_on_path, get_version
from utils import format_frequency, pretty_duration, to_hz

# On Windows terminals, force UTF-8 so icons and accents render OK.
if os.name == "nt":
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, OSError):
        pass

PROGRAM_NAME = "rigctld-py"
CURRENT_VERSION = "0.1.0"
DEFAULT_SETTINGS_FILE = "settings.yml"

# ANSI colors for terminal output
COLOR_YELLOW = "\033[93m"
COLOR_RESET = "\033[0m"

POWER_CHOICES = {
    "off": PowerState.POWER_OFF,
    "on": PowerState.POWER_ON,
    "standby": PowerState.STANDBY,
}

logger = None


def print_banner_safe(title: str = PROGRAM_NAME):
    """Print a nice banner, but never crash on a missing figlet font."""
    if os.getenv("NO_FIGLET") == "1":
        print("\n" + title + "\n")
        return
    for font in ("slant", "standard"):
        try:
            fig = Figlet(font=font, width=120)
            print(fig.renderText(title))
            return
        except FontNotFound:
            continue
    print("\n" + title + "\n")


# -------------------------
# Argument parsing
# -------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Control a radio through Hamlib rigctld, optionally starting rigctld for you.",
    )
    parser.add_argument("--config", help=f"Settings file (default: ./{DEFAULT_SETTINGS_FILE} if present)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--clear-logs", action="store_true", help="Delete old log files and exit")
    parser.add_argument("--no-banner", action="store_true", help="Do not print the start banner")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("version", help="Show program and rigctld versions")
    sub.add_parser("get-freq", help="Print the current frequency")

    p = sub.add_parser("set-freq", help="Set the frequency")
    p.add_argument("frequency", help="Frequency, e.g. 7.1234 (MHz by default)")
    p.add_argument("--unit", choices=["hz", "khz", "mhz"], default="mhz")

    sub.add_parser("get-mode", help="Print the current mode and passband")

    p = sub.add_parser("set-mode", help="Set mode and passband")
    p.add_argument("mode", help=f"One of: {', '.join(m.value for m in Mode)}")
    p.add_argument("passband", nargs="?", type=int, default=0, help="Passband in Hz (0 = rig default)")

    sub.add_parser("get-power", help="Print the power state")

    p = sub.add_parser("set-power", help="Set the power state")
    p.add_argument("state", choices=list(POWER_CHOICES))

    sub.add_parser("snapshot", help="Log mode, passband and frequency in one line")

    p = sub.add_parser("sweep", help="Step the frequency from START to STOP and read it back")
    p.add_argument("start")
    p.add_argument("stop")
    p.add_argument("step")
    p.add_argument("--unit", choices=["hz", "khz", "mhz"], default="mhz")
    p.add_argument("--dwell", type=float, default=0.5, help="Seconds to wait on each step")

    return parser


# -------------------------
# Setup / teardown
# -------------------------
def resolve_settings(config_path: Optional[str]):
    """An explicit --config must exist; the default file is optional."""
    if config_path:
        return load_settings(config_path)
    if os.path.exists(DEFAULT_SETTINGS_FILE):
        return load_settings(DEFAULT_SETTINGS_FILE)
    return load_settings(None)


def create_context(settings, logger_in, traffic_log_path, debug_mode: bool) -> AppContext:
    """Build a run context from settings and runtime choices."""
    return AppContext(
        logger=logger_in,
        config=settings,
        debug_mode=debug_mode,
        traffic_log_path=traffic_log_path,
        daemon_config=build_daemon_config(settings),
        client_settings=build_client_settings(settings),
        manager=build_manager(settings),
        auto_start=bool(settings["rigctld"].get("auto_start", True)),
    )


def daemon_setup(ctx: AppContext) -> None:
    """Start rigctld (auto_start) or make sure an external one is reachable."""
    if ctx.auto_start:
        t0 = time.monotonic()
        ctx.rigctld = ctx.manager.spawn(ctx.daemon_config)
        rig = "Dummy rig" if ctx.daemon_config.is_dummy else f"model {ctx.daemon_config.model}"
        logger.info(
            f"rigctld ready on {ctx.daemon_config.endpoint} (PID {ctx.rigctld.pid}, {rig}) "
            f"after {pretty_duration(time.monotonic() - t0)}"
        )
    else:
        ctx.manager.ensure_external_available(
            ctx.client_settings["host"], ctx.client_settings["port"]
        )
        logger.info(
            f"Using external rigctld at {ctx.client_settings['host']}:{ctx.client_settings['port']}"
        )


def graceful_exit(
    radio_client: Optional[RigctlClient] = None,
    ctx: Optional[AppContext] = None,
) -> None:
    """
    Cleanly release resources.

    - Disconnect the radio client.
    - Stop rigctld if we started it.
    """
    if radio_client:
        try:
            radio_client.disconnect()
        except BaseRadioError as e:
            logger and logger.debug(f"Radio disconnect raised: {e}")

    if ctx and ctx.rigctld:
        try:
            ctx.manager.stop(ctx.rigctld)
        except RigCtldManagerError as e:
            logger and logger.error(f"rigctld stop failed: {e}")


# -------------------------
# Commands
# -------------------------
def print_frequency(hz: float) -> None:
    print(f"Frequency: {hz:.0f} Hz ({format_frequency(hz)} MHz)")


def cmd_version(ctx: AppContext) -> int:
    print(f"{PROGRAM_NAME} v{CURRENT_VERSION}")
    program = ctx.daemon_config.program
    if not exists_on_path(program):
        print(f"{program}: not found on PATH")
        return 1
    ctx.rigctld_version = get_version(program)
    print(ctx.rigctld_version)
    return 0


def cmd_sweep(client: RigctlClient, args) -> int:
    start = to_hz(args.start, args.unit)
    stop = to_hz(args.stop, args.unit)
    step = to_hz(args.step, args.unit)
    if step <= 0:
        raise ValueError("sweep step must be > 0")

    direction = 1 if stop >= start else -1
    freq = start
    steps = 0
    while (freq - stop) * direction <= 0:
        client.set_frequency(freq)
        print_frequency(client.get_frequency())
        steps += 1
        freq += step * direction
        if (freq - stop) * direction <= 0 and args.dwell > 0:
            time.sleep(args.dwell)

    logger.info(f"Sweep done: {steps} step(s).")
    return 0


def run_command(args, client: RigctlClient) -> int:
    command = args.command
    if command == "get-freq":
        print_frequency(client.get_frequency())
    elif command == "set-freq":
        client.set_frequency(to_hz(args.frequency, args.unit))
        print("OK")
    elif command == "get-mode":
        mode, passband = client.get_mode()
        print(f"Mode: {mode.value}  Passband: {passband} Hz")
    elif command == "set-mode":
        client.set_mode(args.mode, args.passband)
        print("OK")
    elif command == "get-power":
        print(f"Power: {client.get_powerstate().name}")
    elif command == "set-power":
        client.set_powerstate(POWER_CHOICES[args.state])
        print("OK")
    elif command == "snapshot":
        client.snapshot_state()
    elif command == "sweep":
        return cmd_sweep(client, args)
    else:
        raise ValueError(f"Unknown command '{command}'")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    global logger
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = resolve_settings(args.config)
    log_settings = settings["logging"]

    # --clear-logs: purge old logs and exit without running anything else
    if args.clear_logs:
        clear_old_logs(log_settings["log_dir"])
        print("[logs] Old logs deleted.")
        return 0

    if not args.command:
        parser.print_help()
        return 1

    if not args.no_banner:
        print_banner_safe(PROGRAM_NAME)

    logger, traffic_log_path = setup_logging(
        log_dir=log_settings["log_dir"],
        clear_old=bool(log_settings.get("clear_old")),
        debug=args.debug,
    )
    ctx = create_context(settings, logger, traffic_log_path, args.debug)
    logger.debug("Logger is initialized")

    if args.command == "version":
        return cmd_version(ctx)

    radio_client: Optional[RigctlClient] = None
    try:
        daemon_setup(ctx)
        radio_client = RigctlClient(debug=ctx.debug_mode, **ctx.client_settings)
        radio_client.connect()
        return run_command(args, radio_client)
    finally:
        # Always clean up, even when a command failed
        graceful_exit(radio_client=radio_client, ctx=ctx)


def cli(argv: Optional[List[str]] = None) -> None:
    """Console entry point: map failures to log lines and exit codes."""
    try:
        rc = main(argv)
    except BaseRadioError as e:
        _fatal(f"[FATAL] Radio communication failed: {e}")
        rc = 1
    except RigCtldManagerError as e:
        _fatal(f"[FATAL] rigctld startup failed: {e}")
        rc = 1
    except (ConfigValidationError, FileNotFoundError) as e:
        _fatal(f"[CONFIG ERROR] {e}")
        rc = 1
    except ValueError as e:
        _fatal(f"[ERROR] {e}")
        rc = 1
    except KeyboardInterrupt:
        print(f"\n{COLOR_YELLOW}Interrupted.{COLOR_RESET}")
        rc = 130
    sys.exit(rc)


def _fatal(msg: str) -> None:
    if logger:
        logger.error(msg)
    else:
        print(msg, file=sys.stderr)


if __name__ == "__main__":
    cli()
