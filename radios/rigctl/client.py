# radios/rigctl/client.py
import threading
from typing import Optional, Tuple, Union

from radio_interface import BaseRadioClient
from loghandler import get_logger
from utils import format_frequency
from .codec import (
    Command,
    GetFrequency,
    GetMode,
    GetPowerState,
    Mode,
    PowerState,
    Response,
    SetFrequency,
    SetMode,
    SetPowerState,
    decode,
    encode,
)
from .connection import DEFAULT_RIGCTLD_PORT, RigctlConnection
from .errors import ConnectionLost, RigctlError

logger = None


class RigctlClient(BaseRadioClient):
    """
    Hamlib rigctld network client speaking the extended response protocol.

    Design:
      - Every operation is encode -> exchange -> decode on one RigctlConnection.
      - No retries: RigError (daemon said no) and RigctlConnectionError
        (transport failed) reach the caller unchanged so it can decide.
      - After a timeout the connection is dropped. Call connect() again to
        continue; the client never reconnects behind the caller's back.
      - A client-level lock serializes calls made from several threads.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_RIGCTLD_PORT,
        label: str = "Radio via rigctl",
        timeout: float = 1.0,
        connect_timeout: float = 5.0,
        debug: bool = False,
    ) -> None:
        global logger
        if logger is None:
            logger = get_logger()

        self.host = host
        self.port = int(port)
        self.label = label
        self.timeout = float(timeout)
        self.connect_timeout = float(connect_timeout)
        self.debug = bool(debug)

        self._conn: Optional[RigctlConnection] = None
        self.lock = threading.RLock()

        # cached snapshot
        self.mode: Optional[Mode] = None
        self.width: Optional[int] = None
        self.freq_hz: Optional[int] = None

    # ---------------------------------------------------------------------
    # Connection lifecycle
    # ---------------------------------------------------------------------

    def get_description(self) -> str:
        return "Hamlib rigctld"

    def get_label(self) -> str:
        return self.label

    @property
    def connected(self) -> bool:
        return self._conn is not None and self._conn.connected

    def connect(self):
        """Open the connection to rigctld."""
        with self.lock:
            if self.connected:
                raise RigctlError(f"Already connected to rigctld at {self.host}:{self.port}")
            try:
                self._conn = RigctlConnection.open(
                    self.host, self.port, timeout=self.timeout, connect_timeout=self.connect_timeout
                )
            except RigctlError:
                logger.error(
                    "Failed to connect to rigctld at %s:%d. Is rigctld running? "
                    "If auto_start is disabled in the settings, start it manually.",
                    self.host, self.port,
                )
                raise
            logger.info(f"Connected to {self.get_label()} ({self.get_description()}) at {self.host}:{self.port}")

    def disconnect(self):
        """Close the connection. Safe to call when not connected."""
        with self.lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Disconnected from rigctld")

    def set_communication_timeout(self, timeout: float) -> None:
        """Response timeout in seconds, applies to the open connection too."""
        self.timeout = float(timeout)
        with self.lock:
            if self._conn is not None:
                self._conn.timeout = self.timeout

    # ---------------------------------------------------------------------
    # Operations
    # ---------------------------------------------------------------------

    def execute(self, command: Command) -> Response:
        """Send one command and return its decoded response."""
        request = encode(command)
        with self.lock:
            if not self.connected:
                raise ConnectionLost(
                    f"Not connected to rigctld at {self.host}:{self.port}; call connect() first"
                )
            if self.debug:
                logger.debug(f"[rigctl] > {request.decode().strip()}")
            try:
                raw = self._conn.exchange(request)
            finally:
                # exchange() closes the socket on timeout/loss; forget it here too
                if self._conn is not None and not self._conn.connected:
                    self._conn = None

        if self.debug:
            logger.debug(f"[rigctl] < {raw}")
        return decode(command, raw)

    def get_frequency(self) -> float:
        """Return the current frequency in Hz."""
        resp = self.execute(GetFrequency())
        self.freq_hz = int(resp.frequency)
        return resp.frequency

    def set_frequency(self, hz: float):
        """Set the frequency in Hz (whole Hz; convert MHz/kHz before calling)."""
        cmd = SetFrequency(float(hz))
        self.execute(cmd)
        self.freq_hz = int(cmd.args()[0])
        logger.info(f"[FREQ] Setting {format_frequency(self.freq_hz)} MHz")

    def get_mode(self) -> Tuple[Mode, int]:
        """Return (mode, passband_hz)."""
        resp = self.execute(GetMode())
        self.mode, self.width = resp.mode, resp.passband
        return resp.mode, resp.passband

    def set_mode(self, mode: Union[Mode, str] = Mode.CW, passband: int = 0):
        """Set mode and passband; passband 0 selects the rig's default width."""
        cmd = SetMode(Mode.parse(mode), passband)
        self.execute(cmd)
        self.mode, self.width = cmd.mode, cmd.passband
        logger.info(f"[MODE] Setting {cmd.mode.value} {cmd.passband}")

    def get_powerstate(self) -> PowerState:
        return self.execute(GetPowerState()).state

    def set_powerstate(self, state: PowerState):
        state = PowerState(state)
        self.execute(SetPowerState(state))
        logger.info(f"[POWER] Setting {state.name}")

    # ---------------------------------------------------------------------
    # Snapshot helpers
    # ---------------------------------------------------------------------

    def snapshot_state(self) -> None:
        """
        Lightweight snapshot of mode/width/frequency.
        Logs a single concise line for visibility.
        """
        self.get_mode()
        self.get_frequency()

        parts = ["[SNAPSHOT]"]
        parts.append(f"mode={self.mode.value}" if self.mode else "mode=unknown")
        if self.width is not None:
            parts.append(f"width={self.width}Hz")
        if self.freq_hz is not None:
            parts.append(f"freq={format_frequency(self.freq_hz)}")
        logger.info(" ".join(parts))
