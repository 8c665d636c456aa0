import logging
import logging.handlers
import sys
from pathlib import Path

from Core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"
SECURITY_FORMAT = "%(asctime)s %(levelname)s [security]: %(message)s"

security_logger = logging.getLogger("security")


def configure_logging(settings: Settings) -> None:
    """Stdout for everything; the security log also goes to its own file when LOG_DIR is set."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if settings.log_dir and not any(
        isinstance(h, logging.handlers.RotatingFileHandler) for h in security_logger.handlers
    ):
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_dir / "security.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(SECURITY_FORMAT))
        security_logger.addHandler(handler)
    security_logger.setLevel(level)
