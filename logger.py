import logging
import logging.config
import sys
from pathlib import Path
from typing import Optional

import yaml

LOG_FORMAT = '%(asctime)s | %(name)20s | %(levelname)8s | %(funcName)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Formatter with colors for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        record = logging.makeLogRecord(record.__dict__)
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    config_path: Optional[str] = None,
    log_level: str = "INFO",
    log_dir: str = "logs"
) -> None:
    """Configure logging from a YAML dictConfig, or console plus log files."""

    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
        logging.config.dictConfig(config)
        return

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    billing_handler = logging.FileHandler(f'{log_dir}/billing.log')
    billing_handler.setLevel(level)
    billing_handler.setFormatter(formatter)

    # Errors only
    error_handler = logging.FileHandler(f'{log_dir}/error.log')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    root_logger.handlers = [console_handler, billing_handler, error_handler]


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance."""
    return logging.getLogger(name)
