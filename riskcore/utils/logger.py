"""Structured logging setup"""

import logging
import sys
from pathlib import Path
from typing import Optional

from riskcore.config.models import LoggingConfig
from riskcore.utils.jsonl_logger import JsonlLogger


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure logging for the engine.

    Args:
        config: LoggingConfig instance (if None, uses defaults)

    Returns:
        Logger instance
    """
    if config is None:
        config = LoggingConfig()

    log_path = Path(config.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("riskcore")
    logger.setLevel(getattr(logging, config.log_level))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, config.log_level))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_path / config.event_log_file)
    file_handler.setLevel(getattr(logging, config.log_level))
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_training_log(config: Optional[LoggingConfig] = None) -> Optional[JsonlLogger]:
    """JSONL sink for training records, or None if disabled"""
    if config is None:
        config = LoggingConfig()
    if not config.training_log_file:
        return None
    return JsonlLogger(str(Path(config.log_dir) / config.training_log_file))
