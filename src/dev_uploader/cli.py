import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console

from . import daemon
from .config import Config, ConfigError, resolve_config_path
from .constants import APP_NAME, LOG_FILE
from .mirror import Mirror
from .reporter import LinkReporter

logger = logging.getLogger(APP_NAME)
console = Console(stderr=True)


def load_config(explicit: str | None) -> Config:
    """Loads the configuration, exiting with status 1 if it is unusable."""
    path = resolve_config_path(explicit)
    try:
        return Config.load(path)
    except ConfigError as e:
        console.print(f"[bold red]FATAL:[/bold red] {e}")
        sys.exit(1)


def show_links(config: Config) -> None:
    """Prints the link of every file currently in the mirror directory."""
    mirror = Mirror(config.mirror_root)
    files = mirror.files()
    if not files:
        console.print(f"[yellow]Mirror directory {mirror.root} is empty.[/yellow]")
        return
    LinkReporter(mirror.root, config.mirror.base_url).report(files)


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser for the `dev-uploader` command."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Mirror local files and URLs into a git-published directory.",
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to the JSON config file (default: ./devuploader.config.json)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Sync, then watch and poll forever (default)")
    subparsers.add_parser("sync", help="Run the initial sync once and exit")
    subparsers.add_parser("links", help="Print the links of all mirrored files")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the dev-uploader CLI."""
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    level = "DEBUG" if args.verbose else config.log.level
    log_file = None
    if args.command in (None, "run"):
        # The long-running daemon also keeps a rotated log file.
        log_file = Path(config.log.file).expanduser() if config.log.file else LOG_FILE
    daemon.setup_logging(level, log_file, config.log.max_size)

    if not config.mirror.base_url:
        logger.warning(
            "No mirror.base_url configured. Links point at the local mirror."
        )

    if args.command == "sync":
        daemon.Uploader(config).initial_sync()
        return
    elif args.command == "links":
        show_links(config)
        return

    daemon.main(config)


if __name__ == "__main__":
    main()
