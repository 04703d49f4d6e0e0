# darts_pose_engine/throw_engine/common/logging_setup.py
import logging
from typing import Union
from .enums import LogLevel

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"

def configure_logging(level: Union[LogLevel, str] = LogLevel.INFO) -> None:
    """Installs one stream handler on the root logger at the requested level."""
    level = LogLevel(str(getattr(level, 'value', level)).upper())
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.value))
