import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .constants import APP_NAME, POLL_INTERVAL_SECONDS
from .mirror import DownloadError, Mirror

logger = logging.getLogger(APP_NAME)

ChangeHandler = Callable[[list[Path]], None]


class RemotePoller:
    """Polls remote URLs and reports the ones whose content changed.

    The last seen SHA-1 digest of every URL is kept in memory only, so the
    first successful poll after a restart always counts as a change.

    Attributes:
        urls (list[str]): The remote source identifiers.
        mirror (Mirror): Downloads into the mirror directory.
        on_change (ChangeHandler): Receives the destination of each changed URL.
        interval (float): Seconds between two polling cycles.
        concurrency (int): Number of URLs checked in parallel within a cycle.
        hashes (dict[str, str]): Last seen digest per URL.
    """

    def __init__(
        self,
        urls: list[str],
        mirror: Mirror,
        on_change: ChangeHandler,
        interval: float = POLL_INTERVAL_SECONDS,
        concurrency: int = 1,
    ):
        self.urls = urls
        self.mirror = mirror
        self.on_change = on_change
        self.interval = interval
        self.concurrency = max(1, concurrency)
        self.hashes: dict[str, str] = {}
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def check(self, url: str) -> Path | None:
        """Downloads one URL and reports it if its content changed.

        A URL whose previous check is still running is skipped. Download
        failures are logged and leave the stored digest untouched.

        Args:
            url (str): The URL to check.

        Returns:
            Path | None: The destination if the content changed, otherwise None.
        """
        with self._lock:
            if url in self._in_flight:
                logger.debug(f"Skipping {url}: previous check still running.")
                return None
            self._in_flight.add(url)

        try:
            dest = self.mirror.destination(url)
            try:
                digest = self.mirror.download(url, dest)
            except DownloadError as e:
                logger.error(f"DOWNLOAD ERROR {e}")
                return None

            with self._lock:
                if self.hashes.get(url) == digest:
                    return None
                self.hashes[url] = digest

            logger.info(f"CHANGED {url} ({digest[:12]})")
            self.on_change([dest])
            return dest
        finally:
            with self._lock:
                self._in_flight.discard(url)

    def poll_once(self) -> list[Path]:
        """Runs one polling cycle over every URL.

        Returns:
            list[Path]: The destinations of the URLs that changed this cycle.
        """
        self.mirror.ensure_root()
        if self.concurrency == 1 or len(self.urls) < 2:
            results = [self.check(url) for url in self.urls]
        else:
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                results = list(pool.map(self.check, self.urls))
        return [r for r in results if r is not None]

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.poll_once()
            except Exception:
                logger.exception("POLL ERROR")

    def start(self) -> None:
        """Starts polling in a background thread, first cycle after one interval."""
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="dev-uploader-poll", daemon=True
        )
        self._thread.start()
        logger.info(f"POLLING {len(self.urls)} URL(s) every {self.interval}s.")

    def stop(self) -> None:
        """Stops polling after the current cycle."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
