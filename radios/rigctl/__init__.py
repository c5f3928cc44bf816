# radios/rigctl/__init__.py
"""
Hamlib rigctld client package.

Exports:
- RigctlClient      (typed client: frequency, mode, power state)
- RigctlConnection  (TCP transport with lockstep request/response)
- codec types       (Mode, PowerState, commands, encode/decode)
- error hierarchy   (RigctlError and subclasses)
"""

from .client import RigctlClient
from .codec import (
    Ack,
    Command,
    FrequencyResponse,
    GetFrequency,
    GetMode,
    GetPowerState,
    Mode,
    ModeResponse,
    PowerState,
    PowerStateResponse,
    Response,
    SetFrequency,
    SetMode,
    SetPowerState,
    decode,
    encode,
)
from .connection import DEFAULT_RIGCTLD_PORT, RigctlConnection
from .errors import (
    ConnectionLost,
    ConnectionRefused,
    ConnectionTimeout,
    MalformedField,
    ProtocolError,
    ProtocolMismatch,
    RigctlConnectionError,
    RigctlError,
    RigError,
    TruncatedResponse,
)

__all__ = [
    "RigctlClient",
    "RigctlConnection",
    "Ack",
    "Command",
    "FrequencyResponse",
    "GetFrequency",
    "GetMode",
    "GetPowerState",
    "Mode",
    "ModeResponse",
    "PowerState",
    "PowerStateResponse",
    "Response",
    "SetFrequency",
    "SetMode",
    "SetPowerState",
    "decode",
    "encode",
    "ConnectionLost",
    "ConnectionRefused",
    "ConnectionTimeout",
    "MalformedField",
    "ProtocolError",
    "ProtocolMismatch",
    "RigctlConnectionError",
    "RigctlError",
    "RigError",
    "TruncatedResponse",
    "DEFAULT_RIGCTLD_PORT",
]
