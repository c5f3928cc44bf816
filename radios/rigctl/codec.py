# radios/rigctl/codec.py
"""
Codec for rigctld's extended response protocol.

Requests are written as long command names with the ';' prefix, which makes
rigctld answer on a single line with ';' between records:

    > ;\\get_freq
    < get_freq:;Frequency: 145000000;RPRT 0

    > ;\\set_mode USB 0
    < set_mode: USB 0;RPRT 0

The first record echoes the command name and its arguments, the last record
is always 'RPRT <code>'. Everything in between is 'Label: value' fields whose
count and order depend on the command.

The codec is pure: no I/O, no state, no unit conversion. Decoding is strict:
anything unexpected raises a ProtocolError instead of defaulting.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, List, Sequence, Tuple, Union

from .errors import MalformedField, ProtocolMismatch, RigError, TruncatedResponse

PREFIX = ";"
SEPARATOR = ";"

_RPRT_RE = re.compile(r"^RPRT (-?\d+)$")
_UINT_RE = re.compile(r"^[0-9]+$")
# Whole Hz; some Hamlib builds print a zero fraction, e.g. "7123400.000000"
_FREQ_RE = re.compile(r"^[0-9]+(?:\.0+)?$")

U32_MAX = 0xFFFFFFFF


class Mode(str, Enum):
    """Hamlib operating modes as spelled on the wire."""
    USB = "USB"
    LSB = "LSB"
    CW = "CW"
    CWR = "CWR"
    RTTY = "RTTY"
    RTTYR = "RTTYR"
    AM = "AM"
    FM = "FM"
    WFM = "WFM"
    AMS = "AMS"
    PKTLSB = "PKTLSB"
    PKTUSB = "PKTUSB"
    PKTFM = "PKTFM"
    ECSSUSB = "ECSSUSB"
    ECSSLSB = "ECSSLSB"
    FAX = "FAX"
    SAM = "SAM"
    SAL = "SAL"
    SAH = "SAH"
    DSB = "DSB"

    @classmethod
    def parse(cls, value: Union["Mode", str]) -> "Mode":
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().upper()
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unknown mode '{value}'. Valid modes: {', '.join(m.value for m in cls)}"
            ) from None

    def __str__(self) -> str:
        return self.value


class PowerState(Enum):
    POWER_OFF = 0
    POWER_ON = 1
    STANDBY = 2


# ---------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Response:
    command: str
    status: int


@dataclass(frozen=True)
class Ack(Response):
    """Bare acknowledgement of a set command."""


@dataclass(frozen=True)
class FrequencyResponse(Response):
    frequency: float


@dataclass(frozen=True)
class ModeResponse(Response):
    mode: Mode
    passband: int


@dataclass(frozen=True)
class PowerStateResponse(Response):
    state: PowerState


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Command:
    """Base class. Subclasses name the command, its arguments and the fields it expects."""
    name: ClassVar[str] = ""
    fields: ClassVar[Tuple[str, ...]] = ()

    def args(self) -> Tuple[str, ...]:
        return ()

    def build_response(self, values: Sequence[str], status: int) -> Response:
        return Ack(self.name, status)


@dataclass(frozen=True)
class GetFrequency(Command):
    name: ClassVar[str] = "get_freq"
    fields: ClassVar[Tuple[str, ...]] = ("Frequency",)

    def build_response(self, values, status):
        return FrequencyResponse(self.name, status, _parse_frequency(values[0], self.name))


@dataclass(frozen=True)
class SetFrequency(Command):
    hz: float
    name: ClassVar[str] = "set_freq"

    def __post_init__(self):
        if not math.isfinite(self.hz) or self.hz < 0:
            raise ValueError(f"Frequency must be a finite, non-negative number of Hz, got {self.hz!r}")

    def args(self):
        return (format_hz(self.hz),)


@dataclass(frozen=True)
class GetMode(Command):
    name: ClassVar[str] = "get_mode"
    fields: ClassVar[Tuple[str, ...]] = ("Mode", "Passband")

    def build_response(self, values, status):
        try:
            mode = Mode(values[0])
        except ValueError:
            raise MalformedField(f"{self.name}: unknown mode '{values[0]}'") from None
        return ModeResponse(self.name, status, mode, _parse_uint(values[1], "Passband", self.name))


@dataclass(frozen=True)
class SetMode(Command):
    mode: Mode
    passband: int = 0
    name: ClassVar[str] = "set_mode"

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "mode", Mode.parse(self.mode))
        object.__setattr__(self, "passband", _passband_hz(self.passband))

    def args(self):
        return (self.mode.value, str(self.passband))


@dataclass(frozen=True)
class GetPowerState(Command):
    name: ClassVar[str] = "get_powerstat"
    fields: ClassVar[Tuple[str, ...]] = ("Power Status",)

    def build_response(self, values, status):
        value = _parse_uint(values[0], "Power Status", self.name)
        try:
            state = PowerState(value)
        except ValueError:
            raise MalformedField(f"{self.name}: unknown power state {value}") from None
        return PowerStateResponse(self.name, status, state)


@dataclass(frozen=True)
class SetPowerState(Command):
    state: PowerState
    name: ClassVar[str] = "set_powerstat"

    def args(self):
        return (str(PowerState(self.state).value),)


# ---------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------

def format_hz(hz: float) -> str:
    """Whole Hz in plain decimal, e.g. 1.2e10 -> '12000000000'."""
    return str(int(round(hz)))


def encode(command: Command) -> bytes:
    """Build the request line for one command."""
    parts = ["\\" + command.name, *command.args()]
    return (PREFIX + " ".join(parts) + "\n").encode("ascii")


def decode(command: Command, raw: Union[str, bytes]) -> Response:
    """
    Parse one extended response for `command`.

    Raises ProtocolMismatch, TruncatedResponse or MalformedField when the text
    cannot be trusted, and RigError when the daemon reported a nonzero status.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    text = text.strip("\r\n")

    segments = text.split(SEPARATOR)
    echoed_name, colon, echoed_args = segments[0].partition(":")
    if not colon or echoed_name.strip() != command.name:
        raise ProtocolMismatch(
            f"Expected response to '{command.name}', got '{segments[0]}'", raw=text
        )

    m = _RPRT_RE.match(segments[-1].strip()) if len(segments) > 1 else None
    if not m:
        raise TruncatedResponse(f"{command.name}: response has no RPRT status", raw=text)

    status = int(m.group(1))
    if status != 0:
        raise RigError(status, command.name)

    if echoed_args.split() != list(command.args()):
        raise ProtocolMismatch(
            f"{command.name}: sent {list(command.args())}, daemon echoed {echoed_args.split()}",
            raw=text,
        )

    values = _parse_fields(command, segments[1:-1], text)
    return command.build_response(values, status)


def _parse_fields(command: Command, segments: List[str], text: str) -> List[str]:
    if len(segments) != len(command.fields):
        raise MalformedField(
            f"{command.name}: expected {len(command.fields)} field(s) {list(command.fields)}, "
            f"got {len(segments)}",
            raw=text,
        )

    values = []
    for label, segment in zip(command.fields, segments):
        got_label, colon, value = segment.partition(":")
        if not colon or got_label.strip() != label:
            raise MalformedField(f"{command.name}: expected field '{label}', got '{segment}'", raw=text)
        value = value.strip()
        if not value:
            raise MalformedField(f"{command.name}: field '{label}' is empty", raw=text)
        values.append(value)
    return values


def _parse_frequency(value: str, command: str) -> float:
    if not _FREQ_RE.match(value):
        raise MalformedField(f"{command}: Frequency '{value}' is not a whole number of Hz")
    return float(value)


def _parse_uint(value: str, label: str, command: str) -> int:
    if not _UINT_RE.match(value) or int(value) > U32_MAX:
        raise MalformedField(f"{command}: {label} '{value}' is not a 32-bit unsigned integer")
    return int(value)


def _passband_hz(value) -> int:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value != int(value)
    ):
        raise ValueError(f"Passband must be a whole number of Hz, got {value!r}")
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"Passband must be between 0 and {U32_MAX} Hz, got {value}")
    return int(value)
