"""Logging setup shared by the receiving and publishing pipelines."""

import logging
import os
import re
import sys
from typing import Any, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_SENSITIVE_NAMES = r'(?:password|passwd|secret|token|api[_-]?key|authorization)'


class SensitiveDataFilter(logging.Filter):
    """Masks credentials that leak into log lines through row payloads."""

    PATTERNS = [
        (re.compile(r'(["\']?' + _SENSITIVE_NAMES + r'\w*["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE),
         r'\1***MASKED***'),
        (re.compile(r'(bearer\s+)([^\s,}\'"]+)', re.IGNORECASE), r'\1***MASKED***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        return True

    def _mask(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._mask(value)
        return value


def _build_formatter(correlation_id: Optional[str]) -> logging.Formatter:
    if correlation_id:
        return logging.Formatter(
            f'%(asctime)s - %(name)s - %(levelname)s - [{correlation_id}] - %(message)s',
            datefmt=DATE_FORMAT
        )
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    component_name: str = "table_sync",
    log_level: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging for a table_sync component.

    Args:
        component_name: Logger name to configure (child loggers inherit it)
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to TABLE_SYNC_LOG_LEVEL env var or INFO
        correlation_id: Optional id (service name, worker id) included in every line

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('TABLE_SYNC_LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(correlation_id))
    handler.addFilter(SensitiveDataFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a table_sync module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
