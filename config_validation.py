"""Settings loading and validation helpers for rigctld-py.

Only shapes and value types are checked here. Whether a model, serial port
and speed make sense together is rigctld's business; a bad combination shows
up later as a ConnectionTimeout from the client.
"""
import copy
import os
from typing import Any, Dict, Optional

import yaml

from radios.rigctl import DEFAULT_RIGCTLD_PORT
from rigctld_manager import DEFAULT_PROGRAM, DUMMY_MODEL, DaemonConfig, RigctldManager

DEFAULT_SETTINGS: Dict[str, Any] = {
    "rigctld": {
        "auto_start": True,
        "program": DEFAULT_PROGRAM,
        "host": "127.0.0.1",
        "port": DEFAULT_RIGCTLD_PORT,
        "model": DUMMY_MODEL,
        "rig_file": None,
        "serial_speed": None,
        "civ_address": None,
        "verbosity": 0,
        "poll_interval": 0.2,
        "readiness_timeout": 5.0,
        "grace_period": 3.0,
    },
    "client": {
        "host": None,  # defaults to rigctld.host
        "port": None,  # defaults to rigctld.port
        "timeout": 1.0,
        "connect_timeout": 5.0,
    },
    "logging": {
        "log_dir": "logs",
        "clear_old": False,
    },
}


class ConfigValidationError(Exception):
    pass


def load_yaml_file(file_path: str) -> Dict[str, Any]:
    """Load a small YAML file into a dict; raise if not found."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Could not parse {file_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{file_path} must contain a mapping at the top level")
    return data


def load_settings(file_path: Optional[str] = None) -> Dict[str, Any]:
    """Load settings and overlay them on the defaults. No path means defaults only."""
    user = load_yaml_file(file_path) if file_path else {}
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    for section, values in user.items():
        if section not in settings:
            raise ConfigValidationError(
                f"Unknown settings section '{section}'. Valid sections: {', '.join(settings)}"
            )
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigValidationError(f"Settings section '{section}' must be a mapping")
        unknown = set(values) - set(settings[section])
        if unknown:
            raise ConfigValidationError(
                f"Unknown key(s) in '{section}': {', '.join(sorted(unknown))}"
            )
        settings[section].update(values)
    validate_settings(settings)
    return settings


def validate_settings(settings: Dict[str, Any], logger=None) -> None:
    """Validate value types early and loudly."""
    rs = settings.get("rigctld", {}) or {}
    cs = settings.get("client", {}) or {}

    try:
        _port(rs.get("port"), "rigctld.port")
        if cs.get("port") is not None:
            _port(cs.get("port"), "client.port")
        _int(rs.get("model"), "rigctld.model", minimum=1)
        _int(rs.get("verbosity", 0), "rigctld.verbosity", minimum=0)
        if rs.get("serial_speed") is not None:
            _int(rs.get("serial_speed"), "rigctld.serial_speed", minimum=1)
        if rs.get("civ_address") is not None:
            parse_civ_address(rs.get("civ_address"))
        for key in ("poll_interval", "readiness_timeout", "grace_period"):
            _positive(rs.get(key), f"rigctld.{key}")
        for key in ("timeout", "connect_timeout"):
            _positive(cs.get(key), f"client.{key}")
        if not rs.get("program"):
            raise ConfigValidationError("rigctld.program must not be empty")
        if not rs.get("host"):
            raise ConfigValidationError("rigctld.host must not be empty")
    except ConfigValidationError as e:
        if logger:
            logger.error(f"Configuration error: {e}")
        raise


def parse_civ_address(value: Any) -> int:
    """Accept 118, '118' or '0x76'."""
    try:
        addr = int(value, 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"rigctld.civ_address '{value}' is not a number (e.g. 0x76)") from None
    if not 0 <= addr <= 0xFF:
        raise ConfigValidationError(f"rigctld.civ_address {value} is out of range 0x00-0xFF")
    return addr


def build_daemon_config(settings: Dict[str, Any]) -> DaemonConfig:
    rs = settings["rigctld"]
    civ = rs.get("civ_address")
    speed = rs.get("serial_speed")
    return DaemonConfig(
        program=str(rs["program"]),
        host=str(rs["host"]),
        port=int(rs["port"]),
        model=int(rs["model"]),
        rig_file=rs.get("rig_file") or None,
        serial_speed=int(speed) if speed is not None else None,
        civ_address=parse_civ_address(civ) if civ is not None else None,
        verbosity=int(rs.get("verbosity") or 0),
    )


def build_manager(settings: Dict[str, Any]) -> RigctldManager:
    rs = settings["rigctld"]
    return RigctldManager(
        poll_interval=float(rs["poll_interval"]),
        readiness_timeout=float(rs["readiness_timeout"]),
        grace_period=float(rs["grace_period"]),
    )


def build_client_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Keyword arguments for RigctlClient."""
    rs, cs = settings["rigctld"], settings["client"]
    host = cs.get("host") or rs["host"]
    if host in ("0.0.0.0", "::"):
        host = "127.0.0.1"
    return {
        "host": host,
        "port": int(cs.get("port") or rs["port"]),
        "timeout": float(cs["timeout"]),
        "connect_timeout": float(cs["connect_timeout"]),
    }


# ---------------------------------------------------------------------
# Value checks
# ---------------------------------------------------------------------

def _int(value: Any, name: str, minimum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise ConfigValidationError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{name} must be an integer, got {value!r}") from None
    if minimum is not None and number < minimum:
        raise ConfigValidationError(f"{name} must be >= {minimum}, got {number}")
    return number


def _port(value: Any, name: str) -> int:
    port = _int(value, name, minimum=1)
    if port > 65535:
        raise ConfigValidationError(f"{name} must be <= 65535, got {port}")
    return port


def _positive(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{name} must be a number of seconds, got {value!r}") from None
    if number <= 0:
        raise ConfigValidationError(f"{name} must be > 0, got {number}")
    return number
