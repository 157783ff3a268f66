"""
Export Pipeline - One Run of the Order Export

Sequences configuration, order retrieval, staging, upload and cleanup.

State walk:
    Idle -> ConfigLoaded -> DataRetrieved -> Staged -> Uploaded -> CleanedUp -> Done
    any failure                                                           -> Failed

Every error is caught once, here, and handed to the ErrorReporter with the
name of the stage that raised it. The staging file is removed before the
report is produced, whether or not the upload succeeded.

Retrieval marks the orders as exported. A batch whose upload later fails is
not re-queued and has to be re-sent by hand.

Usage:
    from apps.exporter.pipeline import ExportPipeline

    ok = ExportPipeline("config.json").run()
"""

import enum
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from apps.exporter.reporter import ErrorReporter
from utils.config import ExportSettings, load_settings
from utils.db import retrieve_orders
from utils.naming import export_filename
from utils.sftp import upload_file
from utils.staging import staged_export

logger = logging.getLogger(__name__)

STAGE_CONFIGURATION = "configuration"
STAGE_RETRIEVAL = "data retrieval"
STAGE_STAGING = "staging"
STAGE_TRANSFER = "transfer"
STAGE_CLEANUP = "cleanup"


class PipelineState(str, enum.Enum):
    IDLE = "Idle"
    CONFIG_LOADED = "ConfigLoaded"
    DATA_RETRIEVED = "DataRetrieved"
    STAGED = "Staged"
    UPLOADED = "Uploaded"
    CLEANED_UP = "CleanedUp"
    DONE = "Done"
    FAILED = "Failed"


class ExportPipeline:
    """
    Single export run.

    Collaborators are injectable so a run can be exercised without a database,
    SFTP server or mail relay.
    """

    def __init__(
        self,
        config_path: str | Path,
        staging_dir: Optional[str] = None,
        *,
        settings_loader: Callable[[str | Path], ExportSettings] = load_settings,
        retrieve: Callable[[ExportSettings], str] = retrieve_orders,
        upload: Callable[..., str] = upload_file,
        reporter: Optional[ErrorReporter] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config_path = config_path
        self.staging_dir = staging_dir
        self.settings_loader = settings_loader
        self.retrieve = retrieve
        self.upload = upload
        self.reporter = reporter or ErrorReporter()
        self.clock = clock

        self._reset()

    def _reset(self) -> None:
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]
        self.settings: Optional[ExportSettings] = None
        self.filename: Optional[str] = None
        self.local_path: Optional[Path] = None
        self.remote_path: Optional[str] = None

    def _advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("Pipeline state: %s", state.value)

    def run(self) -> bool:
        """
        Execute one export run.

        Returns:
            True if the export was uploaded and cleaned up, False if it failed
            (the failure has already been reported)
        """
        self._reset()
        start_time = time.time()
        stage = STAGE_CONFIGURATION

        try:
            self.settings = self.settings_loader(self.config_path)
            self._advance(PipelineState.CONFIG_LOADED)

            stage = STAGE_RETRIEVAL
            document = self.retrieve(self.settings)
            self._advance(PipelineState.DATA_RETRIEVED)

            self.filename = export_filename(self.settings.testmode, self.clock())

            stage = STAGE_STAGING
            with staged_export(self.filename, document, self.staging_dir) as local_path:
                self.local_path = local_path
                self._advance(PipelineState.STAGED)

                stage = STAGE_TRANSFER
                self.remote_path = self.upload(local_path, self.filename, self.settings.ftp)
                self._advance(PipelineState.UPLOADED)

                stage = STAGE_CLEANUP
            self._advance(PipelineState.CLEANED_UP)

        except Exception as e:
            # staged_export has already removed the file on its way out
            if self.local_path is not None and not self.local_path.exists():
                self._advance(PipelineState.CLEANED_UP)
            self._advance(PipelineState.FAILED)
            self.reporter.report(stage, e, self.settings)
            return False

        self._advance(PipelineState.DONE)
        logger.info(
            "Export completed: file=%s, remote_path=%s, elapsed=%.3fs",
            self.filename, self.remote_path, time.time() - start_time,
        )
        return True
