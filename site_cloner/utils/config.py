"""
Configuration management for the site cloner.
"""

import yaml
import logging
from pathlib import Path
from typing import Optional, Union
from dataclasses import dataclass, field


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    max_depth: int = 2
    max_concurrent_requests: int = 10
    request_timeout: int = 30
    retry_attempts: int = 0
    retry_backoff: float = 0.5
    user_agent: str = "Mozilla/5.0 (compatible; SiteCloner/1.0)"
    allow_insecure_ssl: bool = False
    max_content_bytes: int = 25 * 1024 * 1024


@dataclass
class OutputConfig:
    """Where the mirror and the archive are written."""
    directory: str = "copied-site"
    archive_name: str = "cloned-site.zip"
    compression_level: int = 9


@dataclass
class ServerConfig:
    """Configuration for the HTTP front end."""
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/site_cloner.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """
        Load configuration from a YAML file.

        Every section is optional; missing sections and keys take their
        defaults. Without a path the defaults are returned.
        """
        config_data = {}
        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r') as file:
                config_data = yaml.safe_load(file) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        self._config = Config(
            crawler=CrawlerConfig(**(config_data.get('crawler') or {})),
            output=OutputConfig(**(config_data.get('output') or {})),
            server=ServerConfig(**(config_data.get('server') or {})),
            logging=LoggingConfig(**(config_data.get('logging') or {})),
            monitoring=MonitoringConfig(**(config_data.get('monitoring') or {}))
        )

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")

        crawler = self._config.crawler

        if crawler.max_depth < 0:
            raise ValueError("max_depth must be non-negative")

        if crawler.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

        if crawler.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        if crawler.retry_attempts < 0:
            raise ValueError("retry_attempts must be non-negative")

        if crawler.retry_backoff < 0:
            raise ValueError("retry_backoff must be non-negative")

        if not 0 <= self._config.output.compression_level <= 9:
            raise ValueError("compression_level must be between 0 and 9")

        if not self._config.output.archive_name:
            raise ValueError("archive_name must not be empty")

        if crawler.allow_insecure_ssl:
            logging.getLogger(__name__).warning(
                "Configuration disables TLS certificate verification (allow_insecure_ssl)"
            )

        logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from file, or the defaults when no path is given."""
    return ConfigManager(config_path).load_config()
