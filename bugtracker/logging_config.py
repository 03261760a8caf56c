import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"


def setup_logging(level=logging.INFO):
    """Setup centralized logging configuration."""
    root_logger = logging.getLogger()

    # Clear existing handlers to prevent duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    # stderr keeps uvicorn's own output and ours interleaved in one stream
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(console_handler)

    for logger_name in ["bugtracker", "uvicorn", "uvicorn.error", "uvicorn.access"]:
        lg = logging.getLogger(logger_name)
        lg.setLevel(level)
        lg.propagate = True

    root_logger.info("Logging initialized at %s", logging.getLevelName(level))
