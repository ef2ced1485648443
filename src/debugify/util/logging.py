from __future__ import annotations

import logging
import sys

SUCCESS = 25

_FORMAT = "%(levelname)-7s %(message)s"
_HANDLER_NAME = "debugify"


def configure_logging(verbose: bool = False) -> None:
    """
    Configure console logging for the CLI.

    Safe to call more than once: the debugify handler is installed a single time
    and only the level is updated on subsequent calls.
    """
    logging.addLevelName(SUCCESS, "SUCCESS")
    root = logging.getLogger()
    level = logging.DEBUG if verbose else logging.INFO
    root.setLevel(level)

    for handler in root.handlers:
        if handler.get_name() == _HANDLER_NAME:
            handler.setLevel(level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)


def log_success(logger: logging.Logger, msg: str, *args: object) -> None:
    logger.log(SUCCESS, msg, *args)
