# radio_interface.py

"""
Radio client contract

This module defines the minimal interface a radio client must implement.
The only backend today is Hamlib's rigctld (radios/rigctl), but callers
(the command line, tests, scripts) only depend on what is declared here.

Units and types
---------------
• Frequencies are whole Hz. Converting operator input such as "7.1234" MHz
  is the caller's job (see utils.to_hz); clients never guess units.
• Modes are Hamlib mode names (USB, LSB, CW, FM, ...). get_mode() returns
  the mode together with the passband in Hz. A passband of 0 asks the rig
  for its default width.

Request/response discipline
---------------------------
• One request in flight per connection. Clients send a command and block
  until the complete response arrived or the communication timeout expired.
• Clients never retry. A timeout or a rejected command is reported to the
  caller immediately, who decides whether retrying makes sense.

Errors
------
All client errors derive from BaseRadioError. Backends refine it so callers
can tell "the rig rejected the command" apart from "the transport failed".

Developer checklist for new clients
-----------------------------------
[ ] Implement connect(), disconnect(), get/set_frequency(), get/set_mode()
[ ] Raise subclasses of BaseRadioError, never bare OSError/socket.timeout
[ ] Make disconnect() idempotent
"""

from abc import ABC, abstractmethod
from typing import Any, Tuple


class BaseRadioError(Exception):
    """Generic radio communication error (superclass for all rig errors)."""
    pass


class BaseRadioClient(ABC):
    @abstractmethod
    def connect(self): ...

    @abstractmethod
    def disconnect(self): ...

    @abstractmethod
    def get_frequency(self) -> float:
        """Return the current frequency in Hz."""

    @abstractmethod
    def set_frequency(self, hz: float): ...

    @abstractmethod
    def get_mode(self) -> Tuple[Any, int]:
        """Return (mode, passband_hz)."""

    @abstractmethod
    def set_mode(self, mode: Any, passband: int = 0): ...

    def get_description(self) -> str:
        return self.__class__.__name__

    # ---- Context manager support ----
    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False
