# radios/rigctl/errors.py
"""
Exception hierarchy for the rigctl backend.

    RigctlError
    ├── RigctlConnectionError   transport failed (refused, timed out, lost)
    ├── ProtocolError           the daemon answered something we cannot trust
    └── RigError                the daemon answered RPRT <nonzero>

Callers that want to retry should only ever retry on RigctlConnectionError;
a RigError means the command reached the rig and was rejected.
"""

from typing import Optional

from radio_interface import BaseRadioError

# Hamlib's rig_errcode_e, indexed by abs(RPRT code)
RIG_ERROR_NAMES = {
    0: ("RIG_OK", "command completed successfully"),
    1: ("RIG_EINVAL", "invalid parameter"),
    2: ("RIG_ECONF", "invalid configuration"),
    3: ("RIG_ENOMEM", "memory shortage"),
    4: ("RIG_ENIMPL", "function not implemented"),
    5: ("RIG_ETIMEOUT", "communication timed out"),
    6: ("RIG_EIO", "IO error"),
    7: ("RIG_EINTERNAL", "internal Hamlib error"),
    8: ("RIG_EPROTO", "protocol error"),
    9: ("RIG_ERJCTED", "command rejected by the rig"),
    10: ("RIG_ETRUNC", "command performed, but arg truncated"),
    11: ("RIG_ENAVAIL", "function not available"),
    12: ("RIG_ENTARGET", "VFO not targetable"),
    13: ("RIG_BUSERROR", "error talking on the bus"),
    14: ("RIG_BUSBUSY", "collision on the bus"),
    15: ("RIG_EARG", "NULL RIG handle or invalid pointer parameter"),
    16: ("RIG_EVFO", "invalid VFO"),
    17: ("RIG_EDOM", "argument out of domain of function"),
    18: ("RIG_EDEPRECATED", "function deprecated"),
    19: ("RIG_ESECURITY", "security error"),
    20: ("RIG_EPOWER", "rig not powered on"),
}


class RigctlError(BaseRadioError):
    """Custom exception for rigctl-related errors."""
    pass


# ---------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------

class RigctlConnectionError(RigctlError):
    """The TCP conversation with rigctld failed."""
    pass


class ConnectionRefused(RigctlConnectionError):
    """Nothing accepted the connection on host:port."""
    pass


class ConnectionTimeout(RigctlConnectionError):
    """Connect or response did not complete within the timeout.

    This is also how a daemon started with an unreachable device shows up:
    rigctld accepts the connection and then never answers.
    """
    pass


class ConnectionLost(RigctlConnectionError):
    """The peer closed the socket, a send failed, or the connection was already closed."""
    pass


# ---------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------

class ProtocolError(RigctlError):
    """Response text does not follow the extended response protocol."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class ProtocolMismatch(ProtocolError):
    """Response echoes a different command (or different arguments) than was sent."""
    pass


class TruncatedResponse(ProtocolError):
    """Response has no terminal 'RPRT <code>' segment."""
    pass


class MalformedField(ProtocolError):
    """A field segment is missing, mislabelled or not parseable."""
    pass


# ---------------------------------------------------------------------
# Device status
# ---------------------------------------------------------------------

class RigError(RigctlError):
    """rigctld reported a nonzero RPRT code."""

    def __init__(self, code: int, command: str = ""):
        self.code = int(code)
        self.command = command
        self.name, self.description = RIG_ERROR_NAMES.get(
            abs(self.code), ("RIG_EUNKNOWN", "unknown error")
        )
        where = f"{command}: " if command else ""
        super().__init__(f"{where}RPRT {self.code} ({self.name}, {self.description})")

    @property
    def not_available(self) -> bool:
        """True for RPRT -11, e.g. the Dummy rig asked for something it cannot do."""
        return abs(self.code) == 11
