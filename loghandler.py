import os
import glob
import logging
from datetime import datetime

LOGGER_NAME = "rigctld"
TRAFFIC_LOGGER_NAME = "traffic"

_logger = None
_traffic_logger = None
traffic_log_file = None


def setup_logging(log_dir="logs", clear_old=False, debug=False):
    global _logger, _traffic_logger, traffic_log_file

    os.makedirs(log_dir, exist_ok=True)

    if clear_old:
        clear_old_logs(log_dir)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    general_log_file = os.path.join(log_dir, f"rigctld-py_{timestamp}.log")
    traffic_log_file = os.path.join(log_dir, f"traffic_{timestamp}.log")

    # Main logger: file + console. Handlers live on the named logger so a
    # host application's root configuration is left alone.
    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(logging.DEBUG if debug else logging.INFO)
    _close_handlers(_logger)

    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    for handler in (logging.FileHandler(general_log_file, encoding="utf-8"), logging.StreamHandler()):
        handler.setFormatter(formatter)
        _logger.addHandler(handler)

    _logger.debug(f"Log file created: {general_log_file}")
    _logger.debug(f"Wire traffic will be written to: {traffic_log_file}")
    _logger.debug(f"Logging level set to: {'DEBUG' if debug else 'INFO'}")

    # Traffic logger (file only, one line per request/response)
    _traffic_logger = logging.getLogger(TRAFFIC_LOGGER_NAME)
    _traffic_logger.setLevel(logging.DEBUG)
    _close_handlers(_traffic_logger)

    traffic_handler = logging.FileHandler(traffic_log_file, encoding="utf-8")
    traffic_handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
    _traffic_logger.addHandler(traffic_handler)
    _traffic_logger.propagate = False  # Don't send to the main log

    return _logger, traffic_log_file


def get_logger():
    """Return the configured logger, or the bare named logger when used as a library."""
    if _logger is None:
        return logging.getLogger(LOGGER_NAME)
    return _logger


def get_traffic_logger():
    if _traffic_logger is None:
        traffic = logging.getLogger(TRAFFIC_LOGGER_NAME)
        traffic.propagate = False
        if not traffic.handlers:
            traffic.addHandler(logging.NullHandler())
        return traffic
    return _traffic_logger


def clear_old_logs(log_dir: str):
    if not os.path.exists(log_dir):
        return

    deleted = 0
    for file in glob.glob(os.path.join(log_dir, "*.log")):
        try:
            os.remove(file)
            deleted += 1
        except OSError as e:
            print(f"Failed to delete {file}: {e}")

    print(f"Cleared {deleted} old log files.")


def _close_handlers(log: logging.Logger) -> None:
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
