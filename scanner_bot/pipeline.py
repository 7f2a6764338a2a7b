"""Per-file processing: wait for the write to finish, analyze, parse, file."""
import asyncio
import logging
from pathlib import Path
from typing import Protocol

from .config import Settings
from .core.committer import FileCommitter
from .core.exceptions import (
    AnalysisError,
    FileVanishedError,
    ResponseParseError,
    StabilityTimeoutError,
)
from .core.models import ProcessingOutcome
from .core.parser import parse_records
from .core.stability import wait_until_stable

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    def accepts(self, path: Path) -> bool: ...

    async def analyze(self, path: Path) -> str: ...


class DocumentPipeline:
    """Runs one watched file end to end; every failure stays inside the task."""

    def __init__(self, settings: Settings, analyzer: Analyzer, committer: FileCommitter, stability_waiter=wait_until_stable):
        self.settings = settings
        self.analyzer = analyzer
        self.committer = committer
        self._wait_until_stable = stability_waiter

    async def process(self, path: Path) -> ProcessingOutcome:
        """Process ``path`` and report how it ended. Never raises for per-file errors."""
        try:
            return await self._process(path)
        except asyncio.CancelledError:
            logger.warning(f"[PIPELINE] {path.name} - Cancelled; file left in place")
            raise
        except Exception:
            logger.exception(f"[PIPELINE] {path.name} - Unexpected error; file left in place")
            return ProcessingOutcome.FAILED

    async def _process(self, path: Path) -> ProcessingOutcome:
        if not self.analyzer.accepts(path):
            logger.debug(f"[PIPELINE] {path.name} - Not a document type we handle, ignoring")
            return ProcessingOutcome.SKIPPED

        try:
            size = await self._wait_until_stable(
                path,
                threshold=self.settings.stability_threshold_seconds,
                poll_interval=self.settings.stability_poll_interval,
                max_wait=self.settings.stability_max_wait,
            )
        except FileVanishedError:
            logger.info(f"[STABILITY] {path.name} - File disappeared before it settled, skipping")
            return ProcessingOutcome.VANISHED
        except StabilityTimeoutError as exc:
            logger.warning(f"[STABILITY] {path.name} - {exc.message}")
            return ProcessingOutcome.UNSTABLE

        logger.info(f"[PIPELINE] {path.name} - Processing ({size} bytes)")

        try:
            response_text = await self.analyzer.analyze(path)
        except AnalysisError as exc:
            logger.error(f"[ANALYZE] {path.name} - {exc}")
            return ProcessingOutcome.ANALYSIS_FAILED

        try:
            records = parse_records(response_text)
        except ResponseParseError as exc:
            logger.error(f"[PARSE] {path.name} - JSON parse error: {exc}")
            return ProcessingOutcome.PARSE_FAILED

        logger.info(f"[PARSE] {path.name} - {len(records)} record(s) extracted")
        if not records:
            logger.warning(f"[PARSE] {path.name} - Model found no documents; original left in place")
            return ProcessingOutcome.NOTHING_COMMITTED

        result = await asyncio.to_thread(self.committer.commit, path, records)
        if not result.succeeded:
            return ProcessingOutcome.NOTHING_COMMITTED
        if not result.archived:
            return ProcessingOutcome.ARCHIVE_FAILED
        return ProcessingOutcome.FILED
