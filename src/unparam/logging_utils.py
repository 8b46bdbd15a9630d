import logging
import sys
from typing import Optional, TextIO

_HANDLER_NAME = "unparam-stderr"


def setup_logging(verbose: bool = False, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the package logger. Repeated calls replace the handler rather
    than stacking a new one on every CLI invocation.
    """
    logger = logging.getLogger("unparam")
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False
    return logger
