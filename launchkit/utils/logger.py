import os
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def setup_logger(*, json_logs: bool = False, level: str = "INFO", run_name: str = "launchkit") -> None:
    """Configure loguru for a demo run.

    Console level controlled by LOG_LEVEL env (default: ``level``).
    The file sink always captures DEBUG, one file per entry point
    (``logs/<run_name>_<date>.log``), so a failed devnet run can be replayed.

    ``diagnose`` stays off on every sink: loguru would otherwise print local
    variable values in tracebacks, and those include keypairs.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level, diagnose=False)
    else:
        logger.add(
            sys.stdout,
            format=CONSOLE_FORMAT,
            level=console_level,
            colorize=True,
            diagnose=False,
        )

    logger.add(
        f"logs/{run_name}_{{time:YYYY-MM-DD}}.log",
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
        diagnose=False,
    )
