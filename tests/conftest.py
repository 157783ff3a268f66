"""
Shared fixtures for exporter tests.
"""

import orjson
import pytest

from utils.config import ExportSettings


@pytest.fixture
def config_document() -> dict:
    return {
        "ordersDatabase": {"connectionString": "sqlite://"},
        "ftp": {
            "server": "sftp.example.com",
            "userid": "publisher",
            "password": "s3cret",
            "uploadPath": "incoming/orders",
        },
        "testmode": "0",
    }


@pytest.fixture
def email_document(config_document: dict) -> dict:
    return {
        **config_document,
        "errorReporting": {
            "from": "exporter@example.com",
            "to": "ops@example.com",
            "subjectLine": "Order export failed ({stage})",
        },
        "email": {"server": "smtp.example.com:2525"},
    }


@pytest.fixture
def settings(config_document: dict) -> ExportSettings:
    return ExportSettings.model_validate(config_document)


@pytest.fixture
def email_settings(email_document: dict) -> ExportSettings:
    return ExportSettings.model_validate(email_document)


@pytest.fixture
def config_file(tmp_path, config_document):
    path = tmp_path / "config.json"
    path.write_bytes(orjson.dumps(config_document))
    return path
