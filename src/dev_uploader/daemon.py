import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from .config import Config
from .constants import APP_NAME
from .git_wrapper import GitRepo
from .mirror import DownloadError, Mirror
from .poller import RemotePoller
from .publisher import Publisher, PublishResult, log_result
from .reporter import LinkReporter
from .sources import split_sources
from .watcher import LocalWatcher

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def setup_logging(
    level: str = "INFO", log_file: Path | None = None, max_size: int = 5 * 1024 * 1024
) -> None:
    """Configures the logging subsystem.

    Logs always go to stderr, keeping stdout free for published links. With
    `log_file` set, a rotating file handler is added as well.

    Args:
        level (str): The log level name.
        log_file (Path | None): Optional log file path.
        max_size (int): Max bytes before the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


class Uploader:
    """Wires the mirror, change detectors, publisher and reporter together.

    Attributes:
        config (Config): The loaded configuration.
        mirror (Mirror): Materializes sources into the mirror directory.
        publisher (Publisher): Commits and pushes the mirror directory.
        reporter (LinkReporter): Prints the public links of published files.
        local (list[str]): Local source identifiers.
        remote (list[str]): Remote source identifiers.
    """

    def __init__(
        self,
        config: Config,
        mirror: Mirror | None = None,
        publisher: Publisher | None = None,
        reporter: LinkReporter | None = None,
    ):
        root = config.mirror_root
        self.config = config
        self.mirror = mirror or Mirror(
            root,
            timeout=config.http.timeout,
            insecure_loopback=config.http.insecure_loopback,
        )
        self.publisher = publisher or Publisher(
            GitRepo(root, timeout=config.publish.timeout),
            remote=config.publish.remote,
            branch=config.publish.branch,
        )
        self.reporter = reporter or LinkReporter(root, config.mirror.base_url)
        self.local, self.remote = split_sources(config.paths)
        self.watcher: LocalWatcher | None = None
        self.poller: RemotePoller | None = None
        self._stop = threading.Event()

    def publish_and_report(self, files: list[Path]) -> PublishResult:
        """Publishes the mirror, then prints the links of `files`."""
        result = self.publisher.publish(files)
        log_result(result)
        self.reporter.report(files)
        return result

    def initial_sync(self) -> list[Path]:
        """Materializes every source once and publishes the whole mirror.

        Failing sources are logged and skipped. After publishing the new
        files, every file found in the mirror directory (including leftovers
        from earlier runs) is published and reported.

        Returns:
            list[Path]: The destinations materialized by this pass.
        """
        self.mirror.ensure_root()
        materialized: list[Path] = []
        for source in self.config.paths:
            try:
                materialized.append(self.mirror.materialize(source))
            except DownloadError as e:
                logger.error(f"DOWNLOAD ERROR {e}")
            except OSError as e:
                logger.error(f"COPY ERROR {source}: {e}")

        log_result(self.publisher.publish(materialized))
        self.publish_and_report(self.mirror.files())
        return materialized

    def start(self) -> None:
        """Starts the change detectors for the non-empty source lists."""
        watch = self.config.watch
        if self.local:
            self.watcher = LocalWatcher(
                self.local, self.mirror, self.publish_and_report, watch.debounce
            )
            self.watcher.start()
        if self.remote:
            self.poller = RemotePoller(
                self.remote,
                self.mirror,
                self.publish_and_report,
                watch.poll_interval,
                watch.poll_concurrency,
            )
            self.poller.start()

    def stop(self) -> None:
        """Signals `run` to stop the change detectors and return."""
        self._stop.set()

    def run(self) -> None:
        """Runs the initial sync, then watches and polls until stopped."""
        self.mirror.ensure_root()
        if not self.publisher.repo.is_work_tree():
            logger.warning(
                f"{self.mirror.root} is not inside a git work tree. "
                "Files will be mirrored but not published."
            )

        self.initial_sync()
        self.start()
        if self.watcher is None and self.poller is None:
            logger.warning("No sources configured. Nothing to watch.")
            return

        try:
            while not self._stop.wait(1.0):
                pass
        finally:
            if self.watcher is not None:
                self.watcher.stop()
            if self.poller is not None:
                self.poller.stop()
            logger.info("STOPPED.")


def main(config: Config) -> None:
    """The main daemon entry point.

    Installs SIGINT/SIGTERM handlers and runs the uploader until one fires.

    Args:
        config (Config): The loaded configuration.
    """
    uploader = Uploader(config)

    def stop_handler(_signum: int, _frame: FrameType | None) -> None:
        uploader.stop()

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)

    uploader.run()
