"""Command line entry point: ``scanner-bot --watch DIR --dest DIR``."""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from . import __version__
from .config import DEFAULT_MODEL, Settings
from .core.analysis import GeminiAnalyzer, build_client
from .core.committer import FileCommitter
from .core.exceptions import ConfigurationError
from .logging_config import setup_logging
from .pipeline import DocumentPipeline
from .watcher import WatchSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scanner-bot",
        description="Watch a scanner drop folder, extract receipt metadata with Gemini and file each document."
    )
    parser.add_argument("--watch", required=True, type=Path,
                        help="Directory to watch for new files (required)")
    parser.add_argument("--dest", required=True, type=Path,
                        help="Root directory for processed documents (required)")
    parser.add_argument("--model", default=None,
                        help=f"Gemini model to use (default: {DEFAULT_MODEL})")
    parser.add_argument("--logs", type=Path, default=None,
                        help="Also write a log file into this folder")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops; KeyboardInterrupt still ends the run
            pass


async def run_watch(settings: Settings, stop_event: Optional[asyncio.Event] = None) -> None:
    """Wire client, analyzer, committer and session together and watch until stopped."""
    stop_event = stop_event or asyncio.Event()
    _install_signal_handlers(stop_event)

    client = build_client(settings)
    try:
        analyzer = GeminiAnalyzer(client, settings)
        committer = FileCommitter(
            settings.destination_directory,
            currency_marker=settings.currency_marker,
            originals_dirname=settings.originals_dirname,
        )
        pipeline = DocumentPipeline(settings, analyzer, committer)
        session = WatchSession(settings.watch_directory, pipeline)
        await session.run(stop_event)
    finally:
        aclose = getattr(client.aio, "aclose", None)
        if aclose is not None:
            await aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.logs, verbose=args.verbose)
    load_dotenv()

    try:
        settings = Settings.from_env(
            model_name=args.model,
            watch_directory=args.watch.expanduser().absolute(),
            destination_directory=args.dest.expanduser().absolute(),
        )
    except ConfigurationError as exc:
        logger.error(f"❌ {exc}")
        return 1

    if not settings.watch_directory.is_dir():
        logger.error(f"❌ Watch directory does not exist: {settings.watch_directory}")
        return 1
    settings.destination_directory.mkdir(parents=True, exist_ok=True)

    logger.info("🚀 Scanner Bot Started")
    logger.info(f"📂 Watching: {settings.watch_directory}")
    logger.info(f"📁 Output:   {settings.destination_directory}")
    logger.info(f"🤖 Model:    {settings.model_name}")

    try:
        asyncio.run(run_watch(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as exc:
        logger.error(f"❌ Failed to watch directory: {exc}")
        return 1

    logger.info("👋 Scanner Bot stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
