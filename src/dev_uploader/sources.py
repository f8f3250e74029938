"""Classification of source identifiers and their mapping into the mirror root.

A source identifier is either a remote URL (anything starting with ``http``)
or a local path. Every identifier maps to exactly one destination inside the
mirror root, and the mapping depends only on the identifier, the mirror root
and the working directory, so repeated syncs land on the same files.
"""

import hashlib
import os
import posixpath
from pathlib import Path
from urllib.parse import unquote, urlsplit

from .constants import REMOTE_PREFIX


def is_remote(source: str) -> bool:
    """Returns True if the identifier denotes a remote URL."""
    return source.startswith(REMOTE_PREFIX)


def split_sources(sources: list[str]) -> tuple[list[str], list[str]]:
    """Splits identifiers into (local, remote), preserving configured order."""
    local = [s for s in sources if not is_remote(s)]
    remote = [s for s in sources if is_remote(s)]
    return local, remote


def remote_filename(url: str) -> str:
    """Derives the mirror file name for a URL.

    The final segment of the URL path is used, percent-decoded. When the path
    has no usable final segment (``https://host/``, ``https://host/a/``) or the
    decoded segment could escape its directory, the SHA-1 digest of the full
    URL is used instead.
    """
    segment = posixpath.basename(urlsplit(url).path)
    name = unquote(segment)
    if name in ("", ".", "..") or "/" in name or os.sep in name:
        return hashlib.sha1(url.encode("utf-8")).hexdigest()
    return name


def resolve(source: str, mirror_root: Path, cwd: Path | None = None) -> Path:
    """Maps a source identifier to its destination inside the mirror root.

    Local paths are made absolute and taken relative to `cwd` (defaults to the
    process working directory). A local path outside `cwd` yields a relative
    path with ``..`` segments, so the destination may lie outside the mirror
    root; this is accepted as-is.

    Args:
        source (str): A local path or a URL.
        mirror_root (Path): The mirror directory.
        cwd (Path | None): The directory local paths are relative to.

    Returns:
        Path: The destination path.
    """
    if is_remote(source):
        return mirror_root / remote_filename(source)

    base = cwd if cwd is not None else Path.cwd()
    absolute = os.path.normpath(os.path.join(base, os.path.expanduser(source)))
    relative = os.path.relpath(absolute, base)
    return Path(os.path.normpath(os.path.join(mirror_root, relative)))
