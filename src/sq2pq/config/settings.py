"""
Configuration management for the sq2pq export pipeline.

Usage:
    from sq2pq.config.settings import Config
    config = Config()
    workers = config.processing.workers

Environment Variables:
    SQ2PQ_OUTPUT_DIR: Directory receiving the Parquet artifacts
    SQ2PQ_WORKERS: Number of export workers
    SQ2PQ_QUEUE_SIZE: Capacity of the export task queue
    SQ2PQ_ROW_GROUP_SIZE: Rows per Parquet row group
    SQ2PQ_COMPRESSION: Parquet codec (snappy, zstd, gzip, lz4, none)
    BASIN_PROVIDER_URL: Upload endpoint base URL
    BASIN_VAULT: Destination vault
    BASIN_PRIVATE_KEY: Hex encoded secp256k1 private key
    BASIN_HTTP_METHOD: POST or PUT
    BASIN_TIMEOUT: Upload timeout in seconds (0 disables the timeout)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from ..domain.enums import Compression, HttpMethod, PhysicalType

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_URL = "https://basin.tableland.xyz"


@dataclass
class ProcessingConfig:
    """Worker pool and Parquet writer configuration."""
    workers: int = 10
    queue_size: int = 1000
    row_group_size: int = 10_000
    compression: str = "snappy"

    def __post_init__(self):
        """Validate processing configuration."""
        if self.workers < 1:
            raise ValueError("Worker count must be positive")
        if self.queue_size < 1:
            raise ValueError("Queue size must be positive")
        if self.row_group_size < 1:
            raise ValueError("Row group size must be positive")
        if self.compression.lower() not in [c.value for c in Compression]:
            raise ValueError("Compression must be one of: snappy, zstd, gzip, lz4, none")
        self.compression = self.compression.lower()


@dataclass
class OutputConfig:
    """Artifact output configuration."""
    output_dir: Path = Path("output")


@dataclass
class UploadConfig:
    """Signed upload destination configuration."""
    provider_url: str = DEFAULT_PROVIDER_URL
    vault: str = ""
    private_key: str = ""
    method: str = HttpMethod.POST.value
    timeout_s: float = 0

    def __post_init__(self):
        """Normalize values that are safe to check without upload enabled."""
        self.method = self.method.upper()
        if self.method not in [m.value for m in HttpMethod]:
            raise ValueError("HTTP method must be POST or PUT")
        if self.timeout_s < 0:
            raise ValueError("Timeout must be non-negative")

    def validate(self) -> None:
        """Validate the settings that upload requires."""
        if not self.provider_url.startswith(('http://', 'https://')):
            raise ValueError("Provider URL must include protocol (https://)")
        if not self.vault:
            raise ValueError("Vault cannot be empty")
        if not self.private_key:
            raise ValueError("Private key cannot be empty")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


class Config:
    """
    Centralized configuration for the export pipeline.

    Environment variables loaded (in order of preference):
    1. Explicit environment file passed to constructor
    2. .env.{ENVIRONMENT} (where ENVIRONMENT=development|production|staging)
    3. .env file in the working directory
    4. System environment variables

    Example:
        config = Config()
        config = Config(env_file=Path("/secure/production.env"))
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 env_file: Optional[Path] = None,
                 base_dir: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            environment: Target environment (development|staging|production)
            env_file: Explicit path to environment file
            base_dir: Directory searched for .env files (defaults to cwd)
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self.base_dir = base_dir or Path.cwd()

        self._load_environment_variables(env_file)

        self._load_processing_config()
        self._load_output_config()
        self._load_upload_config()

    def _load_environment_variables(self, env_file: Optional[Path]) -> None:
        """Load environment variables from appropriate source."""
        loaded_files = []

        if env_file:
            if not env_file.exists():
                raise ConfigurationError(f"Specified env file not found: {env_file}")
            load_dotenv(env_file)
            loaded_files.append(str(env_file))
            logger.info(f"Loaded configuration from {env_file}")
        else:
            env_specific_file = self.base_dir / f".env.{self.environment}"
            if env_specific_file.exists():
                load_dotenv(env_specific_file)
                loaded_files.append(str(env_specific_file))
                logger.info(f"Loaded environment-specific config: {env_specific_file}")

            generic_env_file = self.base_dir / ".env"
            if generic_env_file.exists():
                load_dotenv(generic_env_file)
                loaded_files.append(str(generic_env_file))
                logger.info(f"Loaded generic config: {generic_env_file}")

        if not loaded_files:
            logger.debug("No .env files found, using system environment variables only")

        self._loaded_env_files = loaded_files

    def _load_processing_config(self) -> None:
        """Load worker pool and writer configuration."""
        try:
            self.processing = ProcessingConfig(
                workers=int(os.getenv("SQ2PQ_WORKERS", "10")),
                queue_size=int(os.getenv("SQ2PQ_QUEUE_SIZE", "1000")),
                row_group_size=int(os.getenv("SQ2PQ_ROW_GROUP_SIZE", "10000")),
                compression=os.getenv("SQ2PQ_COMPRESSION", "snappy"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid processing configuration: {e}")

    def _load_output_config(self) -> None:
        """Load artifact output configuration."""
        self.output = OutputConfig(output_dir=Path(os.getenv("SQ2PQ_OUTPUT_DIR", "output")))

    def _load_upload_config(self) -> None:
        """Load upload sink configuration. Credentials are validated only when upload is used."""
        try:
            self.upload = UploadConfig(
                provider_url=os.getenv("BASIN_PROVIDER_URL", DEFAULT_PROVIDER_URL),
                vault=os.getenv("BASIN_VAULT", ""),
                private_key=os.getenv("BASIN_PRIVATE_KEY", ""),
                method=os.getenv("BASIN_HTTP_METHOD", HttpMethod.POST.value),
                timeout_s=float(os.getenv("BASIN_TIMEOUT", "0")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid upload configuration: {e}")

    def validate_upload(self) -> None:
        """
        Validate upload credentials.

        Raises:
            ConfigurationError: If vault, key or provider URL are missing or invalid
        """
        try:
            self.upload.validate()
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid upload configuration: {e}.\n"
                f"Set BASIN_VAULT and BASIN_PRIVATE_KEY in your .env file "
                f"or pass --basin-vault and --basin-private-key."
            )

    def get_summary(self) -> dict[str, Any]:
        """
        Get configuration summary for logging.

        Returns:
            Dictionary with configuration info (no secrets)
        """
        return {
            'environment': self.environment,
            'loaded_env_files': self._loaded_env_files,
            'output_dir': str(self.output.output_dir),
            'workers': self.processing.workers,
            'queue_size': self.processing.queue_size,
            'row_group_size': self.processing.row_group_size,
            'compression': self.processing.compression,
            'provider_url': self.upload.provider_url,
            'vault': self.upload.vault,
        }

    def __repr__(self) -> str:
        """Safe string representation without credentials."""
        return (
            f"Config(environment={self.environment}, "
            f"output_dir={self.output.output_dir}, "
            f"workers={self.processing.workers})"
        )


@dataclass
class ExportFileConfig:
    """Per-run options read from an optional YAML export file."""
    tables: Optional[list[str]] = None
    type_overrides: Optional[dict[str, dict[str, PhysicalType]]] = None


def load_export_file(config_path: Path) -> ExportFileConfig:
    """
    Load an export YAML file.

    Example file:
        tables: [users, orders]
        type_overrides:
          orders:
            created_at: timestamp

    Args:
        config_path: Path to the YAML file

    Returns:
        Parsed export options

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    tables = raw.get('tables')
    if tables is not None and not (isinstance(tables, list) and all(isinstance(t, str) for t in tables)):
        raise ConfigurationError("'tables' must be a list of table names")

    overrides: dict[str, dict[str, PhysicalType]] = {}
    for table, columns in (raw.get('type_overrides') or {}).items():
        if not isinstance(columns, dict):
            raise ConfigurationError(f"type_overrides for '{table}' must map columns to types")
        try:
            overrides[table] = {col: PhysicalType(str(t).lower()) for col, t in columns.items()}
        except ValueError as e:
            raise ConfigurationError(f"Invalid type override for '{table}': {e}")

    logger.debug(f"Loaded export file {config_path}: tables={tables}, overrides={list(overrides)}")
    return ExportFileConfig(tables=tables, type_overrides=overrides or None)
