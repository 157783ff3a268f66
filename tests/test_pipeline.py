"""
End-to-end tests for one export run with stubbed collaborators.
"""

import io
import re
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from apps.exporter.pipeline import (
    STAGE_CLEANUP,
    STAGE_CONFIGURATION,
    STAGE_RETRIEVAL,
    STAGE_STAGING,
    STAGE_TRANSFER,
    ExportPipeline,
    PipelineState,
)
from apps.exporter.reporter import ErrorReporter
from utils import staging
from utils.errors import ConfigError, DataAccessError, TransferError

ORDERS_XML = '<orders><order id="1"/></orders>'
CLOCK = datetime(2026, 10, 18, 9, 5, 7)


class RecordingUpload:
    """Upload stub that records what was on disk when it was called."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def __call__(self, local_path, filename, ftp):
        self.calls.append(
            {
                "local_path": local_path,
                "filename": filename,
                "existed": local_path.exists(),
                "content": local_path.read_text(encoding="utf-8"),
                "upload_path": ftp.upload_path,
            }
        )
        if self.error:
            raise self.error
        return f"/{ftp.upload_path.strip('/')}/{filename}"


@pytest.fixture
def reporter():
    reporter = MagicMock(spec=ErrorReporter)
    return reporter


def _pipeline(tmp_path, settings, reporter, retrieve=None, upload=None):
    return ExportPipeline(
        "config.json",
        staging_dir=str(tmp_path),
        settings_loader=lambda _path: settings,
        retrieve=retrieve or (lambda _settings: ORDERS_XML),
        upload=upload or RecordingUpload(),
        reporter=reporter,
        clock=lambda: CLOCK,
    )


def test_successful_run_uploads_and_removes_staged_file(tmp_path, settings, reporter):
    upload = RecordingUpload()
    pipeline = _pipeline(tmp_path, settings, reporter, upload=upload)

    assert pipeline.run() is True

    assert pipeline.filename == "20261018-090507.xml"
    assert re.fullmatch(r"\d{8}-\d{6}\.xml", pipeline.filename)
    call = upload.calls[0]
    assert call["existed"] is True
    assert call["content"] == ORDERS_XML
    assert call["filename"] == "20261018-090507.xml"
    assert pipeline.remote_path == "/incoming/orders/20261018-090507.xml"
    assert not (tmp_path / pipeline.filename).exists()
    assert list(tmp_path.iterdir()) == []
    reporter.report.assert_not_called()
    assert pipeline.history == [
        PipelineState.IDLE,
        PipelineState.CONFIG_LOADED,
        PipelineState.DATA_RETRIEVED,
        PipelineState.STAGED,
        PipelineState.UPLOADED,
        PipelineState.CLEANED_UP,
        PipelineState.DONE,
    ]


def test_no_pending_orders_still_completes(tmp_path, settings, reporter):
    upload = RecordingUpload()
    pipeline = _pipeline(tmp_path, settings, reporter, retrieve=lambda _settings: "", upload=upload)

    assert pipeline.run() is True

    assert upload.calls[0]["content"] == ""
    assert list(tmp_path.iterdir()) == []
    reporter.report.assert_not_called()
    assert pipeline.state == PipelineState.DONE


def test_run_twice_starts_from_fresh_state(tmp_path, settings, reporter):
    pipeline = _pipeline(tmp_path, settings, reporter)
    assert pipeline.run() is True

    def failing_retrieve(_settings):
        raise DataAccessError("procedure raised an error")

    pipeline.retrieve = failing_retrieve

    assert pipeline.run() is False

    assert pipeline.history == [PipelineState.IDLE, PipelineState.CONFIG_LOADED, PipelineState.FAILED]
    assert pipeline.local_path is None
    assert pipeline.filename is None
    assert pipeline.remote_path is None


def test_test_mode_prefixes_filename(tmp_path, config_document, reporter):
    from utils.config import ExportSettings

    settings = ExportSettings.model_validate({**config_document, "testmode": "1"})
    pipeline = _pipeline(tmp_path, settings, reporter)

    assert pipeline.run() is True
    assert pipeline.filename == "TEST-20261018-090507.xml"


def test_upload_failure_still_removes_file_and_reports_transfer(tmp_path, settings, reporter):
    error = TransferError("SFTP upload failed", detail="Permission denied")
    upload = RecordingUpload(error=error)
    pipeline = _pipeline(tmp_path, settings, reporter, upload=upload)

    assert pipeline.run() is False

    assert upload.calls[0]["existed"] is True
    assert list(tmp_path.iterdir()) == []
    reporter.report.assert_called_once_with(STAGE_TRANSFER, error, settings)
    assert pipeline.history[-2:] == [PipelineState.CLEANED_UP, PipelineState.FAILED]
    assert PipelineState.UPLOADED not in pipeline.history


def test_upload_failure_sends_exactly_one_email(tmp_path, email_settings):
    mailer = MagicMock()
    reporter = ErrorReporter(stream=io.StringIO(), mailer=mailer)
    upload = RecordingUpload(error=TransferError("SFTP upload failed", detail="exit status 1"))
    pipeline = _pipeline(tmp_path, email_settings, reporter, upload=upload)

    assert pipeline.run() is False

    assert list(tmp_path.iterdir()) == []
    mailer.assert_called_once()
    assert "transfer" in mailer.call_args.kwargs["body"]
    assert mailer.call_args.kwargs["subject"] == "Order export failed (transfer)"


def test_unexpected_upload_error_still_removes_file(tmp_path, settings, reporter):
    pipeline = _pipeline(tmp_path, settings, reporter, upload=RecordingUpload(error=RuntimeError("boom")))

    assert pipeline.run() is False

    assert list(tmp_path.iterdir()) == []
    assert reporter.report.call_args[0][0] == STAGE_TRANSFER


def test_retrieval_failure_creates_no_file(tmp_path, settings, reporter):
    error = DataAccessError("procedure raised an error")
    upload = RecordingUpload()

    def failing_retrieve(_settings):
        raise error

    pipeline = _pipeline(tmp_path, settings, reporter, retrieve=failing_retrieve, upload=upload)

    assert pipeline.run() is False

    assert list(tmp_path.iterdir()) == []
    assert upload.calls == []
    reporter.report.assert_called_once_with(STAGE_RETRIEVAL, error, settings)
    assert pipeline.history == [PipelineState.IDLE, PipelineState.CONFIG_LOADED, PipelineState.FAILED]


def test_config_failure_reports_without_settings(tmp_path, reporter):
    retrieve = MagicMock()
    error = ConfigError("Configuration file not found: config.json")

    def failing_loader(_path):
        raise error

    pipeline = ExportPipeline(
        "config.json",
        staging_dir=str(tmp_path),
        settings_loader=failing_loader,
        retrieve=retrieve,
        reporter=reporter,
    )

    assert pipeline.run() is False

    retrieve.assert_not_called()
    reporter.report.assert_called_once_with(STAGE_CONFIGURATION, error, None)
    assert pipeline.history == [PipelineState.IDLE, PipelineState.FAILED]


def test_staging_write_failure_reports_staging(tmp_path, settings, reporter):
    upload = RecordingUpload()
    pipeline = _pipeline(tmp_path / "missing-dir", settings, reporter, upload=upload)

    assert pipeline.run() is False

    assert upload.calls == []
    assert reporter.report.call_args[0][0] == STAGE_STAGING


def test_cleanup_failure_after_upload_reports_cleanup(tmp_path, settings, reporter, monkeypatch):
    def locked(_path):
        raise PermissionError("file is in use by another process")

    monkeypatch.setattr(staging.os, "remove", locked)
    pipeline = _pipeline(tmp_path, settings, reporter)

    assert pipeline.run() is False

    assert reporter.report.call_args[0][0] == STAGE_CLEANUP
    assert PipelineState.UPLOADED in pipeline.history
    assert PipelineState.CLEANED_UP not in pipeline.history
