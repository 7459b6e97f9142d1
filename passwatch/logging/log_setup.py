import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from passwatch.base.config import LogConfig


def setup_logging(config: LogConfig = None, level: int = logging.INFO, filename: str = "passwatch.log") -> logging.Logger:
    """Attach a rotating file handler to the package logger, in addition to the console handler from
    logging_config.json. Idempotent per log path."""
    if config is None:
        config = LogConfig()
    log_path = Path(config.root_log_dir).expanduser() / filename
    logger = logging.getLogger("passwatch")
    logger.setLevel(level)

    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename).resolve() == log_path.resolve():
            return logger

    # Ensure directory exists
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(filename=log_path, maxBytes=config.max_log_size, backupCount=config.backup_count)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger
