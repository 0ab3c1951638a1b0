"""
Configuration tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adapters.aws.dynamodb_database import DynamoDBDatabase
from adapters.aws.s3_storage import S3Storage
from adapters.azure.blob_storage import AzureBlobStorage
from adapters.azure.table_database import AzureTableDatabase
from adapters.local.file_storage import FileSystemStorage
from adapters.local.json_database import JsonFileDatabase
from buildshelf.config import ServiceConfig, build_adapters, create_service
from buildshelf.errors.exceptions import ConfigError


def test_defaults():
    config = ServiceConfig()
    assert config.backend == "local"
    assert config.local_db_path == "data/db.json"
    assert config.local_storage_path == "data/storage"
    assert config.aws_region == "us-east-1"
    assert config.default_locale == "en"


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ConfigError):
        ServiceConfig.from_mapping({"backend": "local", "bucket": "x"})


def test_unknown_backend():
    with pytest.raises(ConfigError):
        ServiceConfig.from_mapping({"backend": "gcp"})


def test_from_yaml(tmp_path):
    path = tmp_path / "buildshelf.yaml"
    path.write_text("backend: aws\nprefix: /shelf\naws_region: eu-central-1\n")
    config = ServiceConfig.from_yaml(path)
    assert config.backend == "aws"
    assert config.prefix == "/shelf"
    assert config.aws_region == "eu-central-1"


def test_from_yaml_errors(tmp_path):
    with pytest.raises(ConfigError):
        ServiceConfig.from_yaml(tmp_path / "missing.yaml")

    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        ServiceConfig.from_yaml(not_a_mapping)

    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert ServiceConfig.from_yaml(empty) == ServiceConfig()


def test_from_env():
    config = ServiceConfig.from_env({
        "BUILDSHELF_BACKEND": "local",
        "BUILDSHELF_PREFIX": "/api",
        "BUILDSHELF_LOCAL_DB_PATH": "/tmp/db.json",
        "BUILDSHELF_AWS_ENDPOINT_URL": "",
        "UNRELATED": "ignored",
    })
    assert config.prefix == "/api"
    assert config.local_db_path == "/tmp/db.json"
    assert config.aws_endpoint_url is None


def test_from_env_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("# local settings\nBUILDSHELF_DEFAULT_LOCALE=fr\n")
    monkeypatch.delenv("BUILDSHELF_DEFAULT_LOCALE", raising=False)

    config = ServiceConfig.from_env(env_file=str(env_file))
    assert config.default_locale == "fr"
    monkeypatch.delenv("BUILDSHELF_DEFAULT_LOCALE", raising=False)


def test_build_local_adapters(tmp_path):
    config = ServiceConfig(local_db_path=str(tmp_path / "db.json"), local_storage_path=str(tmp_path / "s"))
    database, storage = build_adapters(config)
    assert isinstance(database, JsonFileDatabase)
    assert isinstance(storage, FileSystemStorage)


def test_build_aws_adapters():
    database, storage = build_adapters(ServiceConfig(backend="aws", aws_region="eu-west-1"))
    assert isinstance(database, DynamoDBDatabase)
    assert isinstance(storage, S3Storage)
    assert storage.region == "eu-west-1"


def test_aws_without_region_fails():
    with pytest.raises(ConfigError):
        build_adapters(ServiceConfig(backend="aws", aws_region=None))


AZURITE = (
    "DefaultEndpointsProtocol=http;AccountName=devstoreaccount1;"
    "AccountKey=Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw==;"
    "BlobEndpoint=http://127.0.0.1:10000/devstoreaccount1;"
    "TableEndpoint=http://127.0.0.1:10002/devstoreaccount1;"
)


def test_build_azure_adapters():
    database, storage = build_adapters(ServiceConfig(backend="azure", azure_connection_string=AZURITE))
    assert isinstance(database, AzureTableDatabase)
    assert isinstance(storage, AzureBlobStorage)


def test_azure_without_connection_string_fails():
    with pytest.raises(ConfigError):
        build_adapters(ServiceConfig(backend="azure"))


def test_azure_connection_string_from_env():
    config = ServiceConfig.from_env({
        "BUILDSHELF_BACKEND": "azure",
        "BUILDSHELF_AZURE_CONNECTION_STRING": AZURITE,
    })
    assert config.backend == "azure"
    assert config.azure_connection_string == AZURITE


def test_create_service(tmp_path):
    service = create_service(ServiceConfig(
        prefix="/shelf",
        default_locale="de",
        local_db_path=str(tmp_path / "db.json"),
        local_storage_path=str(tmp_path / "s"),
    ))
    assert service.prefix == "/shelf"
    assert service.default_locale == "de"
