"""Cron logging: stdout + logs/cron_<script>.log. LOG_DIR / LOG_LEVEL env override the defaults."""

import logging
import os
from pathlib import Path

FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def get_logger(script_name: str, log_dir: str | Path | None = None) -> logging.Logger:
    """Logger "cron.<script_name>" with a stream and a file handler. Handlers are attached once per name."""
    logger = logging.getLogger(f"cron.{script_name}")
    if logger.handlers:
        return logger
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    directory = Path(log_dir or os.getenv("LOG_DIR") or "logs")
    directory.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(FORMAT)

    for handler in (
        logging.StreamHandler(),
        logging.FileHandler(directory / f"cron_{script_name}.log", encoding="utf-8"),
    ):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
