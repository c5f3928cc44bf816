# rigctld_manager.py
import shutil
import socket
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from loghandler import get_logger
from radios.rigctl import DEFAULT_RIGCTLD_PORT
from utils import pretty_duration

logger = None

DEFAULT_PROGRAM = "rigctld"
DUMMY_MODEL = 1

_WILDCARD_HOSTS = ("", "0.0.0.0", "::")


class RigCtldManagerError(Exception):
    """Generic rigctld manager error (superclass for all rigctld manager errors)."""
    pass


class DaemonSpawnError(RigCtldManagerError):
    """rigctld could not be brought to the READY state."""

    def __init__(self, message: str, handle: Optional["DaemonHandle"] = None):
        super().__init__(message)
        self.handle = handle


class ExecutableNotFound(DaemonSpawnError):
    pass


class LaunchFailed(DaemonSpawnError):
    pass


class ReadinessTimeout(DaemonSpawnError):
    pass


class DaemonStopError(RigCtldManagerError):
    pass


class TerminationTimeout(DaemonStopError):
    pass


class DaemonState(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    START_FAILED = "start_failed"
    CRASHED = "crashed"


@dataclass(frozen=True)
class DaemonConfig:
    """
    Command line parameters for one rigctld instance.

    The defaults start the Hamlib Dummy rig (model 1) listening on
    127.0.0.1:4532. No switch combination is validated here; a daemon that
    cannot reach its device still starts and then never answers, which the
    client reports as ConnectionTimeout.
    """
    program: str = DEFAULT_PROGRAM
    host: str = "127.0.0.1"
    port: int = DEFAULT_RIGCTLD_PORT
    model: int = DUMMY_MODEL
    rig_file: Optional[str] = None
    serial_speed: Optional[int] = None
    civ_address: Optional[int] = None
    verbosity: int = 0

    @classmethod
    def dummy(cls, host: str = "127.0.0.1", port: int = DEFAULT_RIGCTLD_PORT, **kwargs) -> "DaemonConfig":
        return cls(host=host, port=port, model=DUMMY_MODEL, **kwargs)

    @property
    def is_dummy(self) -> bool:
        return self.model == DUMMY_MODEL and not self.rig_file

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def build_command(self) -> List[str]:
        """Build the rigctld command line."""
        cmd: List[str] = [
            self.program,
            "-T", self.host,
            "-t", str(self.port),
            "-m", str(self.model),
        ]

        if self.rig_file:
            cmd += ["-r", self.rig_file]
        if self.serial_speed is not None:
            cmd += ["-s", str(self.serial_speed)]
        if self.civ_address is not None:
            cmd += ["-c", str(self.civ_address)]
        if self.verbosity > 0:
            cmd += ["-" + "v" * self.verbosity]

        return cmd


class DaemonHandle:
    """
    One spawned rigctld process and its lifecycle state.

    Use it as a context manager to guarantee the process is stopped:

        with manager.spawn(DaemonConfig.dummy(port=4532)) as handle:
            ...
    """

    def __init__(self, config: DaemonConfig, grace_period: float = 3.0):
        global logger
        if logger is None:
            logger = get_logger()

        self.config = config
        self.grace_period = float(grace_period)
        self.process: Optional[subprocess.Popen] = None
        self.state = DaemonState.NOT_STARTED

    def __repr__(self) -> str:
        return f"<DaemonHandle {self.config.endpoint} pid={self.pid} state={self.state.value}>"

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll() if self.process else None

    def poll_state(self) -> DaemonState:
        """Refresh and return the state; a READY daemon that exited becomes CRASHED."""
        if self.state == DaemonState.READY and self.process is not None:
            rc = self.process.poll()
            if rc is not None:
                self.state = DaemonState.CRASHED
                logger.warning(
                    f"rigctld on {self.config.endpoint} (PID {self.process.pid}) exited unexpectedly "
                    f"with code {rc}."
                )
        return self.state

    def is_running(self) -> bool:
        """Return True if our child process is alive."""
        self.poll_state()
        return self.process is not None and self.process.poll() is None

    def stop(self, grace_period: Optional[float] = None) -> None:
        """
        Terminate the process: SIGTERM, then SIGKILL after the grace period.
        Stopping a handle that is already stopped (or never started) is a no-op.
        """
        state = self.poll_state()
        if state in (DaemonState.NOT_STARTED, DaemonState.STOPPED, DaemonState.START_FAILED):
            return
        if self.process is None:
            self.state = DaemonState.STOPPED
            return

        grace = self.grace_period if grace_period is None else float(grace_period)
        self.state = DaemonState.STOPPING

        if self.process.poll() is None:
            logger.info(f"Terminating rigctld (PID {self.process.pid})...")
            self.process.terminate()
            try:
                self.process.wait(timeout=grace)
                logger.info("rigctld terminated successfully.")
            except subprocess.TimeoutExpired:
                logger.warning("rigctld did not terminate in time, forcing kill...")
                self.process.kill()
                try:
                    self.process.wait(timeout=grace)
                except subprocess.TimeoutExpired:
                    msg = f"rigctld (PID {self.process.pid}) survived SIGKILL for {grace:.1f}s."
                    logger.error(msg)
                    raise TerminationTimeout(msg)
        else:
            # Already exited (crashed); reap it.
            self.process.wait()

        self.state = DaemonState.STOPPED

    def _kill_quietly(self) -> None:
        """Kill and reap a process that never became ready."""
        if self.process is None or self.process.poll() is not None:
            return
        self.process.kill()
        try:
            self.process.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            logger.error(f"rigctld (PID {self.process.pid}) did not exit after SIGKILL.")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False


def exists_on_path(program: str = DEFAULT_PROGRAM) -> bool:
    """True if `program` resolves to an executable, without running it."""
    return shutil.which(program) is not None


def get_version(program: str = DEFAULT_PROGRAM) -> str:
    """Return the trimmed output of `<program> --version`."""
    try:
        result = subprocess.run([program, "--version"], capture_output=True, text=True, timeout=10)
    except FileNotFoundError as e:
        raise ExecutableNotFound(f"{program} not found. Is Hamlib installed and on PATH?") from e
    except (OSError, subprocess.SubprocessError) as e:
        raise RigCtldManagerError(f"Failed to execute '{program} --version': {e}") from e

    if result.returncode != 0:
        raise RigCtldManagerError(
            f"'{program} --version' failed with return code {result.returncode}:\n\n{result.stderr.strip()}"
        )
    return result.stdout.strip()


def port_is_occupied(host: str, port: int, timeout: float = 0.5) -> bool:
    """Return True if something accepts TCP connections on host:port."""
    probe_host = "127.0.0.1" if host in _WILDCARD_HOSTS else host
    try:
        with socket.create_connection((probe_host, int(port)), timeout=timeout):
            return True
    except OSError:
        return False


class RigctldManager:
    """
    Spawn, probe and stop local rigctld instances.

    Timing is configurable because daemon startup latency depends on the
    machine and the rig: `poll_interval` between readiness probes,
    `readiness_timeout` until a spawn is given up, `grace_period` between
    SIGTERM and SIGKILL on stop.

    Port ownership is the caller's job: the manager does not stop two
    handles from targeting the same host:port. If a daemon already listens
    there, the readiness probe of the second spawn reaches the first daemon
    and reports READY; the second process then fails to bind, exits, and
    its handle turns CRASHED on the next poll_state().
    """

    def __init__(
        self,
        poll_interval: float = 0.2,
        readiness_timeout: float = 5.0,
        grace_period: float = 3.0,
    ):
        global logger
        if logger is None:
            logger = get_logger()

        self.poll_interval = float(poll_interval)
        self.readiness_timeout = float(readiness_timeout)
        self.grace_period = float(grace_period)
        self.handles: List[DaemonHandle] = []

    # ---------------------------------------------------------------------
    # Probes
    # ---------------------------------------------------------------------

    @staticmethod
    def exists_on_path(program: str = DEFAULT_PROGRAM) -> bool:
        return exists_on_path(program)

    @staticmethod
    def get_version(program: str = DEFAULT_PROGRAM) -> str:
        return get_version(program)

    @staticmethod
    def ensure_external_available(host: str, port: int, timeout: float = 2.0) -> None:
        """Raise unless an externally managed rigctld is listening on host:port."""
        global logger
        if logger is None:
            logger = get_logger()

        if not port_is_occupied(host, port, timeout=timeout):
            msg = (
                f"No rigctld is listening on {host}:{port}.\n\n"
                "💡 Start rigctld yourself or set 'auto_start: true' in the rigctld settings."
            )
            logger.error(msg)
            raise RigCtldManagerError(msg)
        logger.debug(f"External rigctld reachable on {host}:{port}")

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    def spawn(self, config: Optional[DaemonConfig] = None, readiness_timeout: Optional[float] = None) -> DaemonHandle:
        """Start rigctld and wait until its TCP port accepts connections."""
        config = config or DaemonConfig()
        timeout = self.readiness_timeout if readiness_timeout is None else float(readiness_timeout)
        handle = DaemonHandle(config, grace_period=self.grace_period)

        if not exists_on_path(config.program):
            handle.state = DaemonState.START_FAILED
            msg = (
                f"Could not locate the rigctld executable: {config.program}\n\n"
                "💡 Please ensure Hamlib is installed and rigctld is on PATH, "
                "or set 'program' to its full path."
            )
            logger.error(msg)
            raise ExecutableNotFound(msg, handle)

        if port_is_occupied(config.host, config.port):
            logger.warning(
                f"Port {config.port} is already in use. The new rigctld will not be able to bind; "
                "the readiness probe will see the existing listener."
            )

        cmd = config.build_command()
        logger.debug(f"Starting rigctld with command: {' '.join(cmd)}")

        try:
            handle.process = subprocess.Popen(cmd, stdin=subprocess.DEVNULL)
        except OSError as e:
            handle.state = DaemonState.START_FAILED
            msg = f"Failed to start rigctld: {e}"
            logger.error(msg)
            raise LaunchFailed(msg, handle) from e

        handle.state = DaemonState.STARTING
        self.handles.append(handle)

        t0 = time.monotonic()
        deadline = t0 + timeout
        while True:
            probe_timeout = max(0.01, min(0.5, deadline - time.monotonic()))
            if port_is_occupied(config.host, config.port, timeout=probe_timeout):
                handle.state = DaemonState.READY
                logger.debug(
                    f"rigctld started on {config.endpoint} with PID {handle.pid} "
                    f"in {pretty_duration(time.monotonic() - t0)}"
                )
                return handle

            rc = handle.process.poll()
            if rc is not None:
                handle.state = DaemonState.START_FAILED
                self.handles.remove(handle)
                msg = f"rigctld exited with code {rc} before listening on {config.endpoint}."
                logger.error(msg)
                raise LaunchFailed(msg, handle)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(self.poll_interval, remaining))

        handle._kill_quietly()
        handle.state = DaemonState.START_FAILED
        self.handles.remove(handle)
        msg = (
            f"rigctld did not start correctly or failed to bind to {config.endpoint} "
            f"within {pretty_duration(timeout)}."
        )
        logger.error(msg)
        raise ReadinessTimeout(msg, handle)

    def stop(self, handle: DaemonHandle) -> None:
        """Terminate a daemon we started. No-op for handles already stopped."""
        handle.stop(self.grace_period)
        if handle in self.handles and handle.state in (DaemonState.STOPPED, DaemonState.START_FAILED):
            self.handles.remove(handle)

    def stop_all(self) -> None:
        for handle in list(self.handles):
            self.stop(handle)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop_all()
        return False
