"""
Dependency-aware regeneration loop.

The watcher holds the dependency set of the last run as a frozenset that
is only ever replaced whole. Change notifications set a pending flag, so
any number of notifications before the next run starts collapse into one
regeneration; a notification during a run queues exactly one more.
"""

import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from subgraph_codegen.codegen.gen_logging import get_logger
from subgraph_codegen.errors import CodegenError

logger = get_logger(__name__)

DEFAULT_DEBOUNCE = 0.5


class DependencyChangeHandler(FileSystemEventHandler):
    """Forwards watchdog events to the watcher; moves count for their destination too."""

    def __init__(self, watcher: "Watcher"):
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory:
            return
        self.watcher.notify(event.src_path)
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            self.watcher.notify(dest_path)


class Watcher:
    """
    Regenerates on changes to a dependency set that is recomputed after
    every run.

    Args:
        on_trigger: runs one generation; its outcome is the caller's business.
        on_collect_files: returns the current dependency files.
        on_error: called with an exception when recomputing the set fails.
        debounce: seconds without further changes before a regeneration.
        observer_factory: builds a watchdog-compatible observer.
    """

    def __init__(
        self,
        on_trigger: Callable[[], object],
        on_collect_files: Callable[[], Iterable],
        on_error: Optional[Callable[[Exception], None]] = None,
        debounce: float = DEFAULT_DEBOUNCE,
        observer_factory: Callable[[], object] = Observer,
    ):
        self.on_trigger = on_trigger
        self.on_collect_files = on_collect_files
        self.on_error = on_error
        self.debounce = debounce
        self.observer_factory = observer_factory

        self._files = frozenset()
        self._pending = threading.Event()
        self._stopped = threading.Event()
        self._last_change = 0.0
        self._observer = None

    @property
    def files(self) -> frozenset:
        return self._files

    # -- protocol ------------------------------------------------------------

    def start(self):
        """Run generation once and arm the watch on the resulting set."""
        self._stopped.clear()
        self._run()

    def notify(self, path) -> bool:
        """Record a change to path; returns whether path is watched."""
        if _normalize(path) not in self._files:
            return False
        self._last_change = time.monotonic()
        self._pending.set()
        logger.debug(f"[WATCH] Change detected: {path}")
        return True

    def process_pending(self) -> bool:
        """Regenerate if a change is pending; returns whether a run happened."""
        if not self._pending.is_set():
            return False
        self._pending.clear()
        self._run()
        return True

    def watch(self):
        """Block, regenerating on changes, until interrupted or closed."""
        try:
            self.start()
            while not self._stopped.is_set():
                if not self._pending.wait(timeout=0.1):
                    continue
                quiet = time.monotonic() - self._last_change
                if quiet < self.debounce:
                    time.sleep(self.debounce - quiet)
                    continue
                self.process_pending()
        except KeyboardInterrupt:
            logger.info("[WATCH] Stopping")
        finally:
            self.close()

    def close(self):
        """Stop watching and release the observer."""
        self._stopped.set()
        self._release()

    # -- internals -----------------------------------------------------------

    def _run(self):
        self.on_trigger()
        self._refresh()
        if not self._stopped.is_set():
            self._arm()

    def _refresh(self):
        try:
            files = frozenset(_normalize(f) for f in self.on_collect_files())
        except (CodegenError, OSError) as e:
            logger.warning(f"[WATCH] Keeping previous dependency set: {e}")
            if self.on_error is not None:
                self.on_error(e)
            return
        self._files = files

    def _arm(self):
        self._release()
        observer = self.observer_factory()
        handler = DependencyChangeHandler(self)
        for directory in sorted({f.parent for f in self._files}):
            if directory.is_dir():
                observer.schedule(handler, str(directory), recursive=False)
        observer.start()
        self._observer = observer
        logger.info(f"[WATCH] Watching {len(self._files)} files")

    def _release(self):
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join()


def _normalize(path) -> Path:
    return Path(path).resolve()
