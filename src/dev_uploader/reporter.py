import os
from pathlib import Path

from rich.console import Console

console = Console()


class LinkReporter:
    """Prints the public URL of mirrored files, one per line on stdout.

    Attributes:
        root (Path): The mirror directory links are computed relative to.
        base_url (str): The URL the mirror root is published under.
    """

    def __init__(self, root: Path, base_url: str | None = None, out: Console | None = None):
        self.root = root.resolve()
        # Without a configured base URL, links point at the local mirror.
        self.base_url = (base_url or self.root.as_uri()).rstrip("/")
        self.out = out or console

    def link(self, file: Path) -> str:
        """Returns the URL of a single mirrored file."""
        rel = os.path.relpath(Path(file).resolve(), self.root)
        rel = rel.replace(os.sep, "/").replace("\\", "/")
        return f"{self.base_url}/{rel}"

    def links(self, files: list[Path]) -> list[str]:
        """Returns the URL of every file, in input order."""
        return [self.link(f) for f in files]

    def report(self, files: list[Path]) -> None:
        """Prints the URL of every file."""
        for url in self.links(files):
            self.out.print(url, markup=False, highlight=False, soft_wrap=True)
