import logging
import stat
import sys
from pathlib import Path

import pytest

import loghandler
from fake_rigctld import FakeRigctld, find_free_port
from rigctld_manager import RigctldManager

TESTS_DIR = Path(__file__).resolve().parent


@pytest.fixture
def fake_server():
    """In-process fake rigctld on an ephemeral port."""
    server = FakeRigctld().start()
    yield server
    server.stop()


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
def fake_rigctld_program(tmp_path: Path) -> str:
    """Executable named 'rigctld' that runs the fake daemon with this interpreter."""
    script = tmp_path / "rigctld"
    script.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        f"sys.path.insert(0, {str(TESTS_DIR)!r})\n"
        "from fake_rigctld import main\n"
        "sys.exit(main())\n",
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def manager():
    mgr = RigctldManager(poll_interval=0.05, readiness_timeout=5.0, grace_period=2.0)
    yield mgr
    mgr.stop_all()


@pytest.fixture
def reset_logging():
    """Detach the handlers setup_logging() installs so later tests start clean."""
    yield
    for name in (loghandler.LOGGER_NAME, loghandler.TRAFFIC_LOGGER_NAME):
        loghandler._close_handlers(logging.getLogger(name))
    loghandler._logger = None
    loghandler._traffic_logger = None
    loghandler.traffic_log_file = None
