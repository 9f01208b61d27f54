"""
Logging configuration for scripts using the package.

The library itself only creates module loggers; this attaches a console
handler to the 'mdsubstrates' logger.
"""
import logging
import sys


def setup_logging(level: int = logging.INFO) -> None:
    """Send 'mdsubstrates' log records at `level` and above to stdout."""
    logger = logging.getLogger("mdsubstrates")
    logger.setLevel(level)

    # Calling twice must not duplicate output
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(handler)
