"""
TaskFlow configuration handling.

Provides YAML configuration loading, per-environment overrides and validation.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

ENVIRONMENTS = ("development", "staging", "production")
METRICS_TYPES = ("simple", "prometheus")

# Per-environment defaults for fields left unset (None).
ENVIRONMENT_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "development": {"log_level": "DEBUG", "timeout": 10},
    "staging": {"log_level": "WARNING", "timeout": 20},
    "production": {"log_level": "ERROR", "timeout": 30},
}


@dataclass
class TaskflowConfig:
    """
    TaskFlow configuration.

    Can be loaded from a YAML file or created programmatically.
    Durations follow the remote app's conventions: request timeout in
    seconds, cache TTL and retry delay in milliseconds.
    """
    environment: str = "development"

    # Remote service
    base_url: str = "http://localhost:3000/api"
    data_url: str = "http://localhost:3000/data/"
    timeout: Optional[int] = None  # seconds, per environment when unset
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    cache_timeout_ms: int = 5 * 60 * 1000

    # Cache
    cache_enabled: bool = True
    cache_max_size: int = 100
    refresh_interval: int = 0  # seconds, 0 = disabled

    # Local storage
    data_dir: str = "~/.local/share/taskflow"

    # Logging
    log_level: Optional[str] = None  # per environment when unset
    log_file: str = ""
    log_format: str = "%(asctime)s %(name)s %(levelname)s %(message)s"
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 3

    # Metrics
    metrics_enabled: bool = True
    metrics_type: str = "simple"  # simple, prometheus
    metrics_port: int = 9090

    def __post_init__(self) -> None:
        self.environment = str(self.environment).lower()
        if self.environment not in ENVIRONMENTS:
            raise ValueError(
                f"Unknown environment '{self.environment}' (expected one of {', '.join(ENVIRONMENTS)})"
            )
        for name, value in ENVIRONMENT_OVERRIDES[self.environment].items():
            if getattr(self, name) is None:
                setattr(self, name, value)

    @classmethod
    def load(cls, path: str) -> "TaskflowConfig":
        """
        Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            TaskflowConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If config file is invalid YAML
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskflowConfig":
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            TaskflowConfig instance

        Raises:
            ValueError: If the environment name is unknown
        """
        api_cfg = data.get("api", {})
        cache_cfg = data.get("cache", {})
        storage_cfg = data.get("storage", {})
        logging_cfg = data.get("logging", {})
        metrics_cfg = data.get("metrics", {})

        return cls(
            environment=data.get("environment", "development"),
            base_url=api_cfg.get("base_url", "http://localhost:3000/api"),
            data_url=api_cfg.get("data_url", "http://localhost:3000/data/"),
            timeout=api_cfg.get("timeout"),
            retry_attempts=api_cfg.get("retry_attempts", 3),
            retry_delay_ms=api_cfg.get("retry_delay_ms", 1000),
            cache_timeout_ms=api_cfg.get("cache_timeout_ms", 5 * 60 * 1000),
            cache_enabled=cache_cfg.get("enabled", True),
            cache_max_size=cache_cfg.get("max_size", 100),
            refresh_interval=cache_cfg.get("refresh_interval", 0),
            data_dir=storage_cfg.get("data_dir", "~/.local/share/taskflow"),
            log_level=logging_cfg.get("level"),
            log_file=logging_cfg.get("file", ""),
            log_format=logging_cfg.get("format", "%(asctime)s %(name)s %(levelname)s %(message)s"),
            log_max_bytes=logging_cfg.get("max_bytes", 10485760),
            log_backup_count=logging_cfg.get("backup_count", 3),
            metrics_enabled=metrics_cfg.get("enabled", True),
            metrics_type=metrics_cfg.get("type", "simple"),
            metrics_port=metrics_cfg.get("port", 9090),
        )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_data_dir(self) -> Path:
        """
        Get the resolved local storage directory.

        Returns:
            Absolute path to the data directory
        """
        return Path(self.data_dir).expanduser().resolve()

    def validate(self) -> Dict[str, Any]:
        """
        Check the configuration for values the data layer cannot run with.

        Returns:
            Dictionary with ``is_valid``, ``errors`` and ``warnings``
        """
        errors = []
        warnings = []

        if not self.base_url:
            errors.append("api.base_url is required")
        if self.timeout <= 0:
            errors.append("api.timeout must be greater than 0")
        if self.retry_attempts < 1:
            errors.append("api.retry_attempts must be at least 1")
        if self.retry_delay_ms < 0:
            errors.append("api.retry_delay_ms must not be negative")

        if self.metrics_type not in METRICS_TYPES:
            errors.append(f"metrics.type must be one of {', '.join(METRICS_TYPES)}")

        if self.cache_timeout_ms <= 0:
            warnings.append("api.cache_timeout_ms should be greater than 0")
        if self.cache_max_size <= 0:
            warnings.append("cache.max_size should be greater than 0")

        return {
            "is_valid": not errors,
            "errors": errors,
            "warnings": warnings,
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary.

        Returns:
            Configuration as dictionary
        """
        return {
            "environment": self.environment,
            "api": {
                "base_url": self.base_url,
                "data_url": self.data_url,
                "timeout": self.timeout,
                "retry_attempts": self.retry_attempts,
                "retry_delay_ms": self.retry_delay_ms,
                "cache_timeout_ms": self.cache_timeout_ms,
            },
            "cache": {
                "enabled": self.cache_enabled,
                "max_size": self.cache_max_size,
                "refresh_interval": self.refresh_interval,
            },
            "storage": {
                "data_dir": self.data_dir,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
                "format": self.log_format,
                "max_bytes": self.log_max_bytes,
                "backup_count": self.log_backup_count,
            },
            "metrics": {
                "enabled": self.metrics_enabled,
                "type": self.metrics_type,
                "port": self.metrics_port,
            },
        }

    def save(self, path: str) -> None:
        """
        Save configuration to a YAML file.

        Args:
            path: Path to save the configuration file
        """
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)
