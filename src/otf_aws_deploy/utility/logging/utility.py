import enum
import logging
import logging.config
import os
import sys
from typing import List, Optional, Sequence

LOGGING_FORMAT = "[%(levelname)s]%(asctime)s: %(message)s"
LOGGING_DATE_FORMAT = "%Y-%m-%d %H:%M:%S%z"

STREAM_PATHS = ("/dev/stdout", "/dev/stderr")


class LoggingLevel(enum.Enum):
    CRITICAL = logging.CRITICAL
    ERROR = logging.ERROR
    WARNING = logging.WARNING
    INFO = logging.INFO
    DEBUG = logging.DEBUG
    NOTSET = logging.NOTSET

    @staticmethod
    def allowed_levels() -> List[str]:
        return [level.name for level in LoggingLevel]


def setup_logger(
    log_paths: Sequence[str] = ("/dev/stdout",),
    logging_config_file: Optional[str] = None,
    logging_level: str = LoggingLevel.INFO.name,
) -> None:
    """Configure the root logger.

    A logging config file, when given, wins over the other arguments. Otherwise every entry of
    ``log_paths`` gets its own handler, /dev/stdout and /dev/stderr become stream handlers.
    """
    if logging_config_file is not None:
        if not os.path.isfile(logging_config_file):
            raise FileNotFoundError(f"logging config file not found: {logging_config_file}")

        logging.config.fileConfig(logging_config_file, disable_existing_loggers=False)
        return

    formatter = logging.Formatter(fmt=LOGGING_FORMAT, datefmt=LOGGING_DATE_FORMAT)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for path in log_paths:
        if path in STREAM_PATHS:
            handler: logging.Handler = logging.StreamHandler(sys.stdout if path == "/dev/stdout" else sys.stderr)
        else:
            handler = logging.FileHandler(path)

        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    root_logger.setLevel(LoggingLevel[logging_level].value)

    # botocore and urllib3 stay at INFO or above
    logging.getLogger("botocore").setLevel(max(LoggingLevel[logging_level].value, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(LoggingLevel[logging_level].value, logging.INFO))
