"""Per-path claim registry that keeps one processing task per file."""
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path


class InFlightSet:
    """Thread-safe set of paths currently owned by a processing task.

    A path is claimed when a task is dispatched and released when the task
    ends, whatever the outcome. While claimed, further events for the same
    path are ignored.
    """

    def __init__(self) -> None:
        self._paths: set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: Path | str) -> str:
        return str(Path(path).absolute())

    def try_claim(self, path: Path | str) -> bool:
        """Insert ``path`` if absent. Returns False if another task already owns it."""
        key = self._key(path)
        with self._lock:
            if key in self._paths:
                return False
            self._paths.add(key)
            return True

    def release(self, path: Path | str) -> None:
        """Remove ``path`` unconditionally."""
        with self._lock:
            self._paths.discard(self._key(path))

    @contextmanager
    def claimed(self, path: Path | str) -> Iterator[bool]:
        """Claim for the duration of a block; yields whether the claim succeeded."""
        acquired = self.try_claim(path)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(path)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return self._key(path) in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def snapshot(self) -> list[str]:
        with self._lock:
            return sorted(self._paths)
