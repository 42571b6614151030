import dataclasses
from typing import Optional, Tuple

from otf_aws_deploy.config import defaults
from otf_aws_deploy.utility.logging.utility import LoggingLevel


@dataclasses.dataclass
class LoggingConfig:
    paths: Tuple[str, ...] = dataclasses.field(
        default=defaults.DEFAULT_LOGGING_PATHS,
        metadata=dict(
            long="--logging-paths",
            short="-lp",
            type=lambda s: tuple(x for x in s.split(",") if x),
            help="comma-separated list of paths to log to, /dev/stdout and /dev/stderr are treated as streams",
        ),
    )
    level: str = dataclasses.field(
        default=defaults.DEFAULT_LOGGING_LEVEL,
        metadata=dict(
            long="--logging-level", short="-ll", choices=LoggingLevel.allowed_levels(), help="set the logging level"
        ),
    )
    config_file: Optional[str] = dataclasses.field(
        default=None,
        metadata=dict(
            long="--logging-config-file",
            help="use a standard python logging .conf file, overrides --logging-paths and --logging-level",
        ),
    )

    def __post_init__(self) -> None:
        if not self.paths and self.config_file is None:
            raise ValueError("logging paths cannot be empty when no logging config file is given.")
        if self.level not in LoggingLevel.allowed_levels():
            raise ValueError(f"logging level must be one of {LoggingLevel.allowed_levels()}, got {self.level}.")
