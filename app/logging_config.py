"""
Centralized logging configuration for the design store API.

All modules log through ``logging.getLogger(__name__)``; this module only
decides the format and the handlers once, at application start-up.
"""

import logging
import sys


LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging(level: int = logging.INFO):
    """
    Configures the root logger to write to stdout (Docker-compatible) and
    lowers the verbosity of chatty third-party libraries.
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
