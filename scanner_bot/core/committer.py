"""Write extracted records into the destination tree and archive the original.

Each record is copied (never moved) to
``<dest>/<Category>/<Date>_<Vendor>_<Amount><marker><ext>``. Only when at
least one copy landed is the source moved to ``<dest>/originals/``; until
then it stays in the watch directory so nothing is lost.
"""
import errno
import logging
import os
import shutil
from datetime import date
from pathlib import Path
from typing import Callable, Iterable

from .exceptions import ArchiveError, CommitError
from .models import CommitResult, ExtractedRecord, RecordFailure
from .security import ensure_within, normalize_vendor, sanitize_segment, unique_destination

logger = logging.getLogger(__name__)


def robust_copy(src: Path, dst: Path) -> None:
    """Copy file bytes, creating the destination file."""
    shutil.copyfile(src, dst)


def robust_move(src: Path, dst: Path) -> None:
    """Rename ``src`` to ``dst``, copying then deleting across filesystems.

    Only a cross-device failure (EXDEV) triggers the fallback; any other
    rename error propagates and leaves ``src`` where it was.
    """
    try:
        os.rename(src, dst)
        return
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        logger.debug(f"[ARCHIVE] {src.name} - cross-device rename, copying instead")

    robust_copy(src, dst)
    try:
        os.remove(src)
    except OSError:
        # Leave exactly one copy behind: the original stays in the watch directory
        dst.unlink(missing_ok=True)
        raise


class FileCommitter:
    """Files records for one source and archives the source on success."""

    def __init__(
        self,
        destination_root: Path,
        currency_marker: str = "円",
        originals_dirname: str = "originals",
        today: Callable[[], date] = date.today
    ):
        self.destination_root = Path(destination_root)
        self.currency_marker = currency_marker
        self.originals_dirname = originals_dirname
        self._today = today

    @property
    def originals_dir(self) -> Path:
        return self.destination_root / self.originals_dirname

    def destination_name(self, record: ExtractedRecord, source: Path) -> str:
        """``<Date>_<Vendor>_<Amount><marker><ext>`` with the source's extension."""
        record_date = sanitize_segment(record.date) or self._today().isoformat()
        vendor = sanitize_segment(normalize_vendor(record.vendor))
        return f"{record_date}_{vendor}_{record.amount}{self.currency_marker}{source.suffix}"

    def destination_for(self, record: ExtractedRecord, source: Path) -> Path:
        """Full destination path for one record, guaranteed inside the destination root."""
        category_dir = self.destination_root / record.resolved_category.value
        target = category_dir / self.destination_name(record, source)
        ensure_within(self.destination_root, target)
        return target

    def commit_record(self, source: Path, record: ExtractedRecord) -> Path:
        """Copy ``source`` to the record's destination.

        Raises:
            CommitError: If the category directory or the copy cannot be written
        """
        target = self.destination_for(record, source)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target = unique_destination(target)
            robust_copy(source, target)
        except OSError as exc:
            raise CommitError(source, target, exc) from exc
        return target

    def archive_original(self, source: Path) -> Path:
        """Move ``source`` under the originals directory, keeping its basename.

        Raises:
            ArchiveError: If the move fails; the source is left in place
        """
        target = self.originals_dir / source.name
        try:
            self.originals_dir.mkdir(parents=True, exist_ok=True)
            target = unique_destination(target)
            robust_move(source, target)
        except OSError as exc:
            raise ArchiveError(source, target, exc) from exc
        return target

    def commit(self, source: Path, records: Iterable[ExtractedRecord]) -> CommitResult:
        """Copy every record independently, then archive if any copy succeeded."""
        result = CommitResult(source=source)

        for record in records:
            try:
                target = self.commit_record(source, record)
            except CommitError as exc:
                logger.error(f"[COMMIT] {source.name} - {exc}")
                result.failures.append(
                    RecordFailure(record=record, destination=exc.destination, error_message=str(exc))
                )
                continue
            except Exception as exc:
                logger.error(f"[COMMIT] {source.name} - Unexpected error filing {record.vendor!r}: {exc}")
                result.failures.append(RecordFailure(record=record, error_message=str(exc)))
                continue
            logger.info(f"[COMMIT] {source.name} - Saved processed file: {target}")
            result.committed.append(target)

        if not result.committed:
            logger.warning(f"[COMMIT] {source.name} - No records filed; original left in place")
            return result

        try:
            result.archived_to = self.archive_original(source)
        except ArchiveError as exc:
            logger.error(f"[ARCHIVE] {source.name} - Failed to move to originals: {exc}")
            result.archive_error = str(exc)
            return result

        logger.info(f"[ARCHIVE] {source.name} - Archived original to: {result.archived_to}")
        return result
