import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path(__file__).resolve().parents[3] / "logs"
LOG_FILE = LOG_DIR / "market_pulse.log"
FALLBACK_LOG_FILE = Path("/tmp/market_pulse.log")

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def setup_logger(level: str = "DEBUG"):
    """Configures loguru sinks for the dashboard backend."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green>(<level>{level: <8}</level>) - <level>{message}</level>",
        colorize=True,
    )
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            LOG_FILE,
            level=level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
            enqueue=True,
        )
    except OSError:
        try:
            logger.add(
                FALLBACK_LOG_FILE,
                level=level,
                format=FILE_FORMAT,
                rotation="10 MB",
                retention=2,
                encoding="utf-8",
                enqueue=True,
            )
        except OSError:
            # Read-only filesystem: stderr only.
            pass
    return logger
