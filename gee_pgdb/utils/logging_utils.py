"""Console and file logging for reset runs."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = 'gee_pgdb'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ResetLogger:
    """Dual logging to console and file."""

    def __init__(self, log_file: Optional[Path] = None):
        self.log_file = None
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.INFO)
        # Handlers from an earlier run in the same process would duplicate output.
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file is not None:
            try:
                log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_file)
            except OSError as e:
                self.logger.warning(f"Cannot write log file {log_file}: {e}; logging to console only")
            else:
                file_handler.setLevel(logging.INFO)
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
                self.log_file = log_file

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str, exc_info=None):
        if exc_info:
            self.logger.error(message, exc_info=exc_info)
        else:
            self.logger.error(message)

    def section(self, title: str):
        separator = "=" * 70
        self.info(separator)
        self.info(f"  {title}")
        self.info(separator)
