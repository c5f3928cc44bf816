# app_context.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from typing import Protocol

from rigctld_manager import DaemonConfig, DaemonHandle, RigctldManager


class LoggerLike(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


@dataclass
class AppContext:
    """Lightweight container for state shared across the run."""
    logger: LoggerLike
    config: Dict[str, Any]
    debug_mode: bool
    traffic_log_path: Optional[str]
    daemon_config: DaemonConfig
    client_settings: Dict[str, Any]
    manager: RigctldManager
    auto_start: bool = True
    rigctld: Optional[DaemonHandle] = None
    rigctld_version: Optional[str] = None
