import logging
import os
import sys

from loguru import logger

LOG_FILE = "logs/wallet_radar_{time:YYYY-MM-DD}.log"
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def setup_logger(
    *,
    json_logs: bool = False,
    level: str = "INFO",
    log_file: str | None = LOG_FILE,
) -> None:
    """Configure loguru for the API server and the CLI.

    Console level comes from LOG_LEVEL env, falling back to ``level``.
    The file sink (server only; the CLI passes ``log_file=None``) always
    captures DEBUG so degraded upstream calls can be traced afterwards.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level)
    else:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    if log_file:
        logger.add(
            log_file,
            rotation="20 MB",
            retention="7 days",
            compression="gz",
            level="DEBUG",
            serialize=json_logs,
        )

    # httpx logs every request at INFO through stdlib logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
