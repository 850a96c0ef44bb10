"""
Logging setup for the site cloner.

Job-scoped messages go through ``CrawlerLogAdapter`` so every record of a
clone carries the target URL, and skipped resources carry their own URL
and kind, both in plain text and in the JSON output.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Dict, Any
from datetime import datetime, timezone

from .config import LoggingConfig


CONTEXT_FIELDS = ('job', 'url', 'kind', 'event')

QUIET_LOGGERS = ('aiohttp', 'asyncio', 'charset_normalizer')


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Attaches the job's context to every record it emits."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault('extra', {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        return msg, kwargs

    def resource_event(self, level: int, url: str, kind: str, message: str):
        """Log something that happened to a single fetched resource."""
        self.log(level, message, extra={'url': url, 'kind': kind, 'event': 'resource'})


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` config section.

    Console output always goes to stdout. With ``config.file`` set, a
    rotating file handler (10MB, 3 backups) receives everything at DEBUG.

    Returns:
        The configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # aiohttp.access logs one line per served request
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Logging initialized (file: {config.file or 'disabled'})")
    return root_logger


def get_crawler_logger(name: str, **context) -> CrawlerLogAdapter:
    """Logger for ``name`` whose records all carry ``context``."""
    return CrawlerLogAdapter(logging.getLogger(name), context)
