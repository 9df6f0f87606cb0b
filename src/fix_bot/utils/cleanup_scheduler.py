"""Deferred, cancellable removal of workspace directories."""

import logging
import shutil
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class CleanupHandle:
    """A pending removal of one directory."""

    path: Path
    due_at: float
    timer: threading.Timer | None = field(default=None, repr=False)
    done: bool = False


def remove_directory(path: Path) -> bool:
    """Remove ``path`` recursively; log and swallow errors.

    Returns:
        True if the directory is gone afterwards.
    """
    try:
        shutil.rmtree(path)
        logger.info("Cleaned up workspace %s", path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error("Failed to clean up workspace %s: %s", path, exc)
        return False
    return True


class CleanupScheduler:
    """Schedules best-effort removal of directories after a delay.

    With ``autostart`` every entry is backed by a daemon timer. With
    ``autostart=False`` nothing runs until ``run_due()`` or ``flush()`` is
    called, which lets callers (and tests) drive cleanup deterministically.
    """

    def __init__(
        self,
        autostart: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.autostart = autostart
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[Path, CleanupHandle] = {}
        self._closed = False

    def schedule(self, path: str | Path, delay_seconds: float) -> CleanupHandle:
        """Schedule removal of ``path`` after ``delay_seconds``.

        Re-scheduling a path replaces (and cancels) its previous entry.
        """
        key = Path(path)
        handle = CleanupHandle(path=key, due_at=self._clock() + max(0.0, delay_seconds))

        with self._lock:
            if self._closed:
                raise RuntimeError("CleanupScheduler has been shut down")
            previous = self._pending.pop(key, None)
            if previous is not None and previous.timer is not None:
                previous.timer.cancel()
            if self.autostart:
                handle.timer = threading.Timer(
                    max(0.0, delay_seconds), self._fire, args=(handle,)
                )
                handle.timer.daemon = True
            self._pending[key] = handle

        if handle.timer is not None:
            handle.timer.start()
        logger.debug("Scheduled cleanup of %s in %.0fs", key, delay_seconds)
        return handle

    def cancel(self, path: str | Path) -> bool:
        """Drop the pending removal of ``path``; True if one existed."""
        with self._lock:
            handle = self._pending.pop(Path(path), None)
        if handle is None:
            return False
        if handle.timer is not None:
            handle.timer.cancel()
        return True

    def is_pending(self, path: str | Path) -> bool:
        with self._lock:
            return Path(path) in self._pending

    def pending(self) -> list[CleanupHandle]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda h: h.due_at)

    def run_due(self) -> int:
        """Run every entry whose due time has passed; return how many ran."""
        now = self._clock()
        with self._lock:
            due = [h for h in self._pending.values() if h.due_at <= now]
        return sum(1 for handle in due if self._fire(handle))

    def flush(self) -> int:
        """Run every pending entry now regardless of its due time."""
        with self._lock:
            handles = list(self._pending.values())
        return sum(1 for handle in handles if self._fire(handle))

    def shutdown(self, run_pending: bool = False) -> None:
        """Stop accepting work; optionally run what is still pending."""
        if run_pending:
            self.flush()
        with self._lock:
            self._closed = True
            handles = list(self._pending.values())
            self._pending.clear()
        for handle in handles:
            if handle.timer is not None:
                handle.timer.cancel()

    def _fire(self, handle: CleanupHandle) -> bool:
        with self._lock:
            if self._pending.get(handle.path) is not handle:
                return False
            del self._pending[handle.path]
        if handle.timer is not None:
            handle.timer.cancel()
        handle.done = True
        remove_directory(handle.path)
        return True
