"""Local change detection.

Filesystem events are pushed onto a queue by watchdog's observer threads. A
single consumer thread owns the debounce logic: it waits for a first event,
keeps draining until the queue has been quiet for the debounce window, then
materializes the whole batch and hands the destinations to the batch handler
in one call. Because there is only one consumer, flushes never overlap.
"""

import logging
import queue
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .constants import APP_NAME, DEBOUNCE_SECONDS, IGNORED_EVENT_TYPES, IGNORED_NAMES
from .mirror import Mirror

logger = logging.getLogger(APP_NAME)

BatchHandler = Callable[[list[Path]], None]


def collect_batch(
    events: queue.Queue, debounce: float, wait: float | None = None
) -> set[str] | None:
    """Collects one debounced batch of changed paths.

    Blocks up to `wait` seconds for the first event (forever if None). Every
    further event restarts the `debounce` window; the batch is returned once
    the window passes without events.

    Args:
        events (queue.Queue): The queue producers push paths onto.
        debounce (float): The quiet period that ends a batch.
        wait (float | None): How long to wait for the first event.

    Returns:
        set[str] | None: The unique paths of the batch, or None if no event
        arrived within `wait`.
    """
    try:
        first = events.get(timeout=wait)
    except queue.Empty:
        return None

    batch = {first}
    while True:
        try:
            batch.add(events.get(timeout=debounce))
        except queue.Empty:
            return batch


class _QueueingHandler(FileSystemEventHandler):
    """Pushes the paths touched by relevant watchdog events onto a queue."""

    def __init__(self, push: Callable[[str], None], files: set[Path] | None = None):
        super().__init__()
        self.push = push
        # When set, only these files are reported (single-file watches).
        self.files = files

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in IGNORED_EVENT_TYPES:
            return
        # Directory mtime bumps accompany every child change; the child is enough.
        if event.is_directory and event.event_type == "modified":
            return

        path = getattr(event, "dest_path", "") or event.src_path
        if isinstance(path, bytes):
            path = path.decode()
        if self.files is not None and Path(path) not in self.files:
            return
        self.push(path)


class LocalWatcher:
    """Watches local sources and flushes debounced batches into the mirror.

    Attributes:
        sources (list[str]): Local source identifiers (files or directories).
        mirror (Mirror): Materializes changed paths.
        on_batch (BatchHandler): Receives the destinations of each flush.
        debounce (float): Quiet period before a batch is flushed.
    """

    def __init__(
        self,
        sources: list[str],
        mirror: Mirror,
        on_batch: BatchHandler,
        debounce: float = DEBOUNCE_SECONDS,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.sources = sources
        self.mirror = mirror
        self.on_batch = on_batch
        self.debounce = debounce
        self.events: queue.Queue = queue.Queue()
        self._observer_factory = observer_factory
        self._observer: Observer | None = None
        self._consumer: threading.Thread | None = None
        self._stop = threading.Event()

    def push(self, path: str) -> None:
        """Records a changed path, unless it belongs to the mirror or a git dir."""
        p = Path(path)
        if any(part in IGNORED_NAMES for part in p.parts):
            return
        if p.resolve().is_relative_to(self.mirror.root):
            return
        self.events.put(str(p))

    def _schedule(self, observer: Observer) -> int:
        """Registers watches for every source. Returns the number of watches."""
        file_watches: dict[Path, set[Path]] = {}
        count = 0
        for source in self.sources:
            path = Path(source).expanduser().resolve()
            if path.is_dir():
                observer.schedule(_QueueingHandler(self.push), str(path), recursive=True)
                count += 1
            elif path.exists():
                file_watches.setdefault(path.parent, set()).add(path)
            else:
                logger.warning(f"WATCH SKIPPED {source}: path does not exist.")

        # Single files are watched through their parent, filtered to the file.
        for parent, files in file_watches.items():
            observer.schedule(
                _QueueingHandler(self.push, files), str(parent), recursive=False
            )
            count += 1
        return count

    def start(self) -> None:
        """Starts the observer and the consumer thread."""
        self._stop.clear()
        self._observer = self._observer_factory()
        watches = self._schedule(self._observer)
        self._observer.start()
        self._consumer = threading.Thread(
            target=self._consume, name="dev-uploader-flush", daemon=True
        )
        self._consumer.start()
        logger.info(f"WATCHING {watches} location(s), debounce {self.debounce}s.")

    def stop(self) -> None:
        """Stops watching. A batch still accumulating is dropped."""
        self._stop.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        if self._consumer is not None:
            self._consumer.join()

    def _consume(self) -> None:
        while not self._stop.is_set():
            batch = collect_batch(self.events, self.debounce, wait=0.5)
            if not batch or self._stop.is_set():
                continue
            try:
                self.flush(batch)
            except Exception:
                logger.exception("FLUSH ERROR")

    def flush(self, batch: set[str]) -> list[Path]:
        """Materializes every path of a batch, then hands the result on once.

        Paths that no longer exist are skipped (deletions are not mirrored).
        A failing copy is logged and skipped without aborting the batch.

        Args:
            batch (set[str]): The changed paths.

        Returns:
            list[Path]: The destinations that were written.
        """
        self.mirror.ensure_root()
        copied: list[Path] = []
        for path in sorted(batch):
            src = Path(path)
            if not src.exists():
                logger.debug(f"Skipping {path}: no longer exists.")
                continue
            try:
                copied.append(self.mirror.materialize(str(src)))
            except OSError as e:
                logger.error(f"COPY ERROR {path}: {e}")

        if copied:
            self.on_batch(copied)
        return copied
