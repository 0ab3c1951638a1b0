"""
Service configuration.

One explicit dataclass, loaded from a mapping, a YAML file or BUILDSHELF_*
environment variables. Unknown keys are rejected rather than ignored.

Environment variables:
    BUILDSHELF_BACKEND             local | aws | azure
    BUILDSHELF_PREFIX              routing prefix (e.g. /buildshelf)
    BUILDSHELF_DEFAULT_LOCALE      fallback locale (default: en)
    BUILDSHELF_LOCAL_DB_PATH       JSON database file (default: data/db.json)
    BUILDSHELF_LOCAL_STORAGE_PATH  storage root directory (default: data/storage)
    BUILDSHELF_AWS_REGION          AWS region (default: us-east-1)
    BUILDSHELF_AWS_ENDPOINT_URL    custom endpoint (LocalStack, DynamoDB Local)
    BUILDSHELF_AZURE_CONNECTION_STRING  storage account connection string (Blob and Tables)
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from buildshelf.errors.exceptions import ConfigError

logger = logging.getLogger("buildshelf.service")

ENV_PREFIX = "BUILDSHELF_"
BACKENDS = ("local", "aws", "azure")


@dataclass
class ServiceConfig:
    backend: str = "local"
    prefix: str = ""
    default_locale: str = "en"
    local_db_path: str = "data/db.json"
    local_storage_path: str = "data/storage"
    aws_region: Optional[str] = "us-east-1"
    aws_endpoint_url: Optional[str] = None
    azure_connection_string: Optional[str] = None

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend '{self.backend}'. Expected one of {BACKENDS}")

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, data: Optional[dict]) -> "ServiceConfig":
        data = dict(data or {})
        unknown = sorted(set(data) - set(cls.keys()))
        if unknown:
            raise ConfigError(f"Unknown config keys: {unknown}. Known: {cls.keys()}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ServiceConfig":
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, env_file: Optional[str] = ".env") -> "ServiceConfig":
        """Build from BUILDSHELF_* variables. A .env file fills in unset variables."""
        if environ is None:
            if env_file:
                _load_env_file(env_file)
            environ = os.environ
        data = {}
        for key in cls.keys():
            value = environ.get(ENV_PREFIX + key.upper())
            if value is not None and value != "":
                data[key] = value
        return cls.from_mapping(data)


def _load_env_file(env_file: str) -> None:
    """Load .env file into os.environ."""
    path = Path(env_file)
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip())


def build_adapters(config: ServiceConfig):
    """
    Construct the (database, storage) pair for the configured backend.

    Raises:
        ConfigError: If the backend is missing required settings
    """
    if config.backend == "local":
        from adapters.local.json_database import JsonFileDatabase
        from adapters.local.file_storage import FileSystemStorage

        logger.info(f"Local backends: db={config.local_db_path}, storage={config.local_storage_path}")
        return JsonFileDatabase(config.local_db_path), FileSystemStorage(config.local_storage_path)

    if config.backend == "aws":
        if not config.aws_region:
            raise ConfigError("aws backend requires aws_region (BUILDSHELF_AWS_REGION)")
        from adapters.aws.dynamodb_database import DynamoDBDatabase
        from adapters.aws.s3_storage import S3Storage

        logger.info(f"AWS backends: region={config.aws_region}, endpoint={config.aws_endpoint_url or 'default'}")
        return (
            DynamoDBDatabase(region=config.aws_region, endpoint_url=config.aws_endpoint_url),
            S3Storage(region=config.aws_region, endpoint_url=config.aws_endpoint_url),
        )

    if config.backend == "azure":
        if not config.azure_connection_string:
            raise ConfigError("azure backend requires azure_connection_string (BUILDSHELF_AZURE_CONNECTION_STRING)")
        from adapters.azure.blob_storage import AzureBlobStorage
        from adapters.azure.table_database import AzureTableDatabase

        logger.info("Azure backends: Data Tables and Blob Storage")
        return (
            AzureTableDatabase(connection_string=config.azure_connection_string),
            AzureBlobStorage(connection_string=config.azure_connection_string),
        )

    raise ConfigError(f"Unknown backend '{config.backend}'")


def create_service(config: ServiceConfig):
    from buildshelf.service import Service

    database, storage = build_adapters(config)
    return Service(database, storage, prefix=config.prefix, default_locale=config.default_locale)
