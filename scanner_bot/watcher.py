"""Event loop: turn directory notifications into per-file processing tasks."""
import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core.inflight import InFlightSet
from .core.models import EventKind, WatchEvent
from .pipeline import DocumentPipeline

logger = logging.getLogger(__name__)


class DocumentEventHandler(FileSystemEventHandler):
    """Translate watchdog callbacks (observer thread) into WatchEvents.

    Renames count because some scanners write a temp file and rename it into
    place. On Linux a permission change arrives as a modified event.
    """

    def __init__(self, watch_directory: Path, emit: Callable[[WatchEvent], None]):
        super().__init__()
        self.watch_directory = Path(watch_directory).absolute()
        self._emit = emit

    def _inside_watch_directory(self, path: Path) -> bool:
        return path.parent == self.watch_directory

    def _forward(self, raw_path, kind: EventKind) -> None:
        path = Path(os.fsdecode(raw_path)).absolute()
        if not self._inside_watch_directory(path):
            return
        self._emit(WatchEvent(path=path, kind=kind))

    def dispatch(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        try:
            super().dispatch(event)
        except Exception:
            logger.exception(f"[WATCH] Failed to handle {event.event_type} event for {event.src_path}")

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event.src_path, EventKind.CREATE)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(event.src_path, EventKind.WRITE)

    def on_closed(self, event: FileSystemEvent) -> None:
        self._forward(event.src_path, EventKind.WRITE)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._forward(event.dest_path, EventKind.RENAME)


class WatchSession:
    """Owns the in-flight set and the tasks spawned for one watch directory."""

    def __init__(
        self,
        watch_directory: Path,
        pipeline: DocumentPipeline,
        inflight: Optional[InFlightSet] = None,
        observer_factory=Observer,
        health_check_interval: float = 1.0,
        drain_timeout: float = 30.0
    ):
        self.watch_directory = Path(watch_directory).absolute()
        self.pipeline = pipeline
        self.inflight = inflight if inflight is not None else InFlightSet()
        self._observer_factory = observer_factory
        self._health_check_interval = health_check_interval
        self._drain_timeout = drain_timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def handle_event(self, event: WatchEvent) -> Optional[asyncio.Task]:
        """Spawn a processing task unless the path is already in flight."""
        if not self.inflight.try_claim(event.path):
            logger.debug(f"[WATCH] {event.path.name} - Already in flight, ignoring {event.kind.value}")
            return None

        logger.debug(f"[WATCH] {event.path.name} - {event.kind.value} event, dispatching")
        task = asyncio.create_task(self._run(event.path), name=f"process:{event.path.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, path: Path) -> None:
        try:
            outcome = await self.pipeline.process(path)
            logger.debug(f"[WATCH] {path.name} - Finished: {outcome.value}")
        finally:
            self.inflight.release(path)

    def _start_observer(self, handler: DocumentEventHandler):
        observer = self._observer_factory()
        observer.schedule(handler, str(self.watch_directory), recursive=False)
        observer.start()
        return observer

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Consume notifications until ``stop_event`` is set.

        Raises:
            OSError: If the directory watch cannot be attached at startup
        """
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[WatchEvent] = asyncio.Queue()

        def emit(event: WatchEvent) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, event)

        handler = DocumentEventHandler(self.watch_directory, emit)
        observer = self._start_observer(handler)
        logger.info(f"[WATCH] Watching {self.watch_directory}")

        try:
            while not stop_event.is_set():
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=self._health_check_interval)
                except asyncio.TimeoutError:
                    observer = self._ensure_observer_alive(observer, handler)
                    continue
                self.handle_event(event)
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join, 5)
            await self.drain()

    def _ensure_observer_alive(self, observer, handler: DocumentEventHandler):
        if observer.is_alive():
            return observer
        logger.error("[WATCH] Directory watcher stopped unexpectedly; restarting")
        try:
            return self._start_observer(handler)
        except OSError as exc:
            logger.error(f"[WATCH] Could not re-attach watcher: {exc}")
            return observer

    async def drain(self) -> None:
        """Wait for in-flight tasks, cancelling whatever outlives the drain timeout."""
        if not self._tasks:
            return
        pending = set(self._tasks)
        logger.info(f"[WATCH] Waiting for {len(pending)} in-flight file(s) to finish")
        _, still_pending = await asyncio.wait(pending, timeout=self._drain_timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning(f"[WATCH] Cancelled {len(still_pending)} unfinished task(s); their files stay in place")
            await asyncio.gather(*still_pending, return_exceptions=True)
