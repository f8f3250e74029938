"""dev-uploader: drop a file, get a link.

This package mirrors configured local paths and remote URLs into a git
working tree, commits and pushes it whenever content changes, and prints the
public URL of every published file.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    git_wrapper,
    mirror,
    poller,
    publisher,
    reporter,
    sources,
    watcher,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "git_wrapper",
    "mirror",
    "poller",
    "publisher",
    "reporter",
    "sources",
    "watcher",
]
