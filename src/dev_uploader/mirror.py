import contextlib
import hashlib
import ipaddress
import logging
import os
import shutil
from pathlib import Path
from urllib.parse import urlsplit

import requests

from .constants import (
    APP_NAME,
    DOWNLOAD_CHUNK_SIZE,
    HTTP_TIMEOUT_SECONDS,
    IGNORED_NAMES,
    LOOPBACK_HOSTS,
)
from .sources import is_remote, resolve

logger = logging.getLogger(APP_NAME)


class DownloadError(RuntimeError):
    """Raised when a remote resource cannot be fetched."""


def is_loopback(host: str | None) -> bool:
    """Determines whether a URL host refers to the local machine.

    Args:
        host (str | None): The host part of a URL, without port or brackets.

    Returns:
        bool: True for `localhost` style names and loopback IPv4/IPv6 addresses.
    """
    if not host:
        return False
    if host.lower() in LOOPBACK_HOSTS:
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def copy_file(src: Path, dest: Path) -> Path:
    """Copies a single file, creating parent directories and overwriting `dest`."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dest)
    return dest


def copy_tree(src: Path, dest: Path, exclude: Path | None = None) -> list[Path]:
    """Recursively replicates `src` under `dest`.

    Existing files are overwritten. Files that exist under `dest` but not
    under `src` are left in place: the mirror only grows.

    Args:
        src (Path): The source directory.
        dest (Path): The destination directory.
        exclude (Path | None): A directory never descended into, typically the
            mirror root itself when it lives inside a watched directory.

    Returns:
        list[Path]: The destination paths of every copied file.
    """
    copied: list[Path] = []
    dest.mkdir(parents=True, exist_ok=True)
    for entry in sorted(src.iterdir()):
        if entry.name in IGNORED_NAMES:
            continue
        if exclude is not None and entry.resolve() == exclude:
            continue
        target = dest / entry.name
        if entry.is_dir() and not entry.is_symlink():
            copied.extend(copy_tree(entry, target, exclude))
        elif entry.is_file():
            copied.append(copy_file(entry, target))
        else:
            logger.debug(f"Skipping {entry}: not a regular file or directory.")
    return copied


class Mirror:
    """Materializes source identifiers inside the mirror directory.

    The mirror is the only component that writes file contents below the
    mirror root.

    Attributes:
        root (Path): The mirror directory.
        timeout (float): Connect/read timeout for downloads.
        insecure_loopback (bool): Skip certificate checks for loopback hosts.
    """

    def __init__(
        self,
        root: Path,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        insecure_loopback: bool = True,
    ):
        self.root = root.resolve()
        self.session = session or requests.Session()
        self.timeout = timeout
        self.insecure_loopback = insecure_loopback

    def ensure_root(self) -> Path:
        """Creates the mirror directory if it does not exist yet."""
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def destination(self, source: str) -> Path:
        """Returns the mirror path a source identifier maps to."""
        return resolve(source, self.root)

    def files(self) -> list[Path]:
        """Lists every regular file currently below the mirror root, sorted."""
        if not self.root.is_dir():
            return []
        return sorted(
            p
            for p in self.root.rglob("*")
            if p.is_file()
            and not any(part in IGNORED_NAMES for part in p.relative_to(self.root).parts)
        )

    def materialize(self, source: str, dest: Path | None = None) -> Path:
        """Copies or downloads a source to its mirror destination.

        Args:
            source (str): A local path (file or directory) or a URL.
            dest (Path | None): Destination override. Defaults to the resolved path.

        Returns:
            Path: The destination that was written.

        Raises:
            OSError: If a local copy fails (including a missing source).
            DownloadError: If a remote download fails.
        """
        dest = dest or self.destination(source)
        if is_remote(source):
            self.download(source, dest)
            return dest

        src = Path(source).expanduser().resolve()
        if src.is_dir():
            copied = copy_tree(src, dest, exclude=self.root)
            logger.info(f"COPIED {src} -> {dest} ({len(copied)} files)")
        else:
            copy_file(src, dest)
            logger.info(f"COPIED {src} -> {dest}")
        return dest

    def download(self, url: str, dest: Path) -> str:
        """Streams a URL to `dest` and returns the SHA-1 digest of the body.

        Certificate verification is disabled only when the URL host is a
        loopback address and `insecure_loopback` is enabled.

        Args:
            url (str): The HTTP(S) URL to fetch.
            dest (Path): The file to write.

        Returns:
            str: Hex SHA-1 digest of the downloaded bytes.

        Raises:
            DownloadError: On transport failures or a non-2xx status.
        """
        verify = not (self.insecure_loopback and is_loopback(urlsplit(url).hostname))
        digest = hashlib.sha1()
        tmp_file = dest.with_name(f".{dest.name}.part")
        try:
            with self.session.get(
                url, stream=True, timeout=self.timeout, verify=verify
            ) as res:
                if not 200 <= res.status_code < 300:
                    raise DownloadError(
                        f"Failed to download {url}: HTTP {res.status_code}"
                    )
                dest.parent.mkdir(parents=True, exist_ok=True)
                # The previous copy stays in place until the body is complete.
                with open(tmp_file, "wb") as f:
                    for chunk in res.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            digest.update(chunk)
            os.replace(tmp_file, dest)
        except requests.RequestException as e:
            self._discard(tmp_file)
            raise DownloadError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            self._discard(tmp_file)
            raise DownloadError(f"Failed to write {dest}: {e}") from e

        logger.debug(f"DOWNLOADED {url} -> {dest}")
        return digest.hexdigest()

    @staticmethod
    def _discard(tmp_file: Path) -> None:
        if tmp_file.exists():
            with contextlib.suppress(OSError):
                tmp_file.unlink()
