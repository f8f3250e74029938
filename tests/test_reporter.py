"""Tests for published link formatting."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from dev_uploader.reporter import LinkReporter

BASE = "https://raw.githubusercontent.com/user/repo/main/dist"


def test_links_append_relative_posix_paths(tmp_path: Path) -> None:
    """Verifies `<base>/<relative path>` with forward slashes."""
    root = tmp_path / "dist"
    reporter = LinkReporter(root, BASE + "/")

    assert reporter.links([root / "README.md", root / "assets" / "img" / "a b.png"]) == [
        f"{BASE}/README.md",
        f"{BASE}/assets/img/a b.png",
    ]


def test_links_default_to_local_file_uri(tmp_path: Path) -> None:
    """Verifies that an unset base URL falls back to the mirror's file URI."""
    root = tmp_path / "dist"
    reporter = LinkReporter(root)

    assert reporter.link(root / "x.txt") == f"{root.resolve().as_uri()}/x.txt"


def test_report_prints_one_link_per_line(tmp_path: Path) -> None:
    """Verifies that long links are printed unwrapped, one per line."""
    root = tmp_path / "dist"
    out = io.StringIO()
    reporter = LinkReporter(root, BASE, out=Console(file=out, width=20))
    long_name = "a-very-long-file-name-that-exceeds-the-console-width.txt"

    reporter.report([root / "a.txt", root / long_name])

    assert out.getvalue().splitlines() == [f"{BASE}/a.txt", f"{BASE}/{long_name}"]


def test_report_uses_stdout_by_default(
    tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that links go to stdout."""
    root = tmp_path / "dist"

    LinkReporter(root, BASE).report([root / "[bold]x.txt"])

    assert capsys.readouterr().out.strip() == f"{BASE}/[bold]x.txt"
