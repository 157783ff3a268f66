"""
Export Scheduler - Cron and On-Demand Execution

Runs the order export on a cron schedule using APScheduler, or once and exits.

Features:
- Cron-based scheduling (configurable via EXPORT_SCHEDULE_CRON)
- RUN_ONCE mode for immediate execution (exit code 1 on failure)
- At most one run at a time; a run that is still going swallows the next tick
- Graceful shutdown handling

Only one exporter process may run against a given orders database: retrieval
marks orders exported, so two overlapping processes would split a batch.

Usage:
    # Scheduled mode (default)
    python -m apps.exporter

    # Run once and exit
    RUN_ONCE=true python -m apps.exporter
"""

import logging
import signal
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.exporter.pipeline import ExportPipeline
from utils.config import RuntimeSettings, get_runtime_settings
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


class ExportScheduler:
    """
    Scheduler for periodic or on-demand export runs.

    Handles:
    - APScheduler setup and management
    - Cron-based scheduling
    - RUN_ONCE immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(self, runtime: RuntimeSettings) -> None:
        self.runtime = runtime
        self.scheduler: BlockingScheduler | None = None

        logger.info(
            "ExportScheduler initialized: run_once=%s, cron_schedule=%s, config_path=%s",
            runtime.RUN_ONCE, runtime.EXPORT_SCHEDULE_CRON, runtime.EXPORT_CONFIG_PATH,
        )

    def execute_export(self) -> bool:
        """Run one export. Failures are reported by the pipeline itself."""
        logger.info("Starting export execution")

        pipeline = ExportPipeline(
            self.runtime.EXPORT_CONFIG_PATH,
            staging_dir=self.runtime.STAGING_DIR,
        )
        ok = pipeline.run()

        if ok:
            logger.info("Export execution completed successfully: file=%s", pipeline.filename)
        else:
            logger.warning("Export execution failed: history=%s", [s.value for s in pipeline.history])
        return ok

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info("Received signal %d, initiating graceful shutdown", signum)
            if self.scheduler and self.scheduler.running:
                self.scheduler.shutdown(wait=False)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def start(self) -> bool:
        """
        Start scheduler or execute once.

        In scheduled mode, blocks until a shutdown signal arrives.
        In RUN_ONCE mode, executes immediately and returns the run outcome.
        """
        if self.runtime.RUN_ONCE:
            logger.info("Running in RUN_ONCE mode")
            return self.execute_export()

        logger.info("Running in scheduled mode")
        self.setup_signal_handlers()

        self.scheduler = BlockingScheduler()
        trigger = CronTrigger.from_crontab(self.runtime.EXPORT_SCHEDULE_CRON)
        self.scheduler.add_job(
            self.execute_export,
            trigger=trigger,
            id="export_job",
            name="Periodic Order Export",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        logger.info("Scheduled export job: schedule=%s", self.runtime.EXPORT_SCHEDULE_CRON)
        logger.info("Waiting for jobs...")

        # Blocks until shutdown
        self.scheduler.start()
        logger.info("Scheduler shutdown complete")
        return True


def main() -> None:
    """Main entry point for the exporter."""
    runtime = get_runtime_settings()
    setup_logging(runtime.LOG_LEVEL, runtime.LOG_FORMAT)

    scheduler = ExportScheduler(runtime)

    try:
        ok = scheduler.start()
    except Exception as e:
        logger.error("Scheduler failed: %s", str(e), exc_info=True)
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
