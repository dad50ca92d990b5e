"""Logger configuration for the timesheet assistant.

Records carry the assistant's action ("preview" / "commit") and the client
request id when they are logged inside `request_context`; elsewhere both
show as "-".
"""

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

CONTEXT_DEFAULTS = {"action": "-", "request_id": "-"}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[action]}:{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[action]}:{extra[request_id]} | {name}:{function}:{line} - {message} | {extra}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "14 days",
) -> None:
    """Send timesheet logs to stderr and, optionally, a rotating file.

    Args:
        level: Minimum level for both sinks
        log_file: Path of the audit log; None keeps console output only
        rotation: When to start a new file (size or interval)
        retention: How long rotated files are kept
    """
    logger.remove()
    logger.configure(extra=dict(CONTEXT_DEFAULTS))

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )

    logger.debug("Logger initialized", level=level, log_file=log_file)


@contextmanager
def request_context(action: str, request_id: str | None = None) -> Iterator[None]:
    """Tag every record logged inside the block with the action and request id."""
    with logger.contextualize(action=action, request_id=request_id or "-"):
        yield
