"""Shared fixtures: an HTTP session double that never touches the network."""

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest


class FakeResponse:
    """Mimics the parts of `requests.Response` used for streamed downloads."""

    def __init__(
        self, status_code: int = 200, body: bytes = b"", error: Exception | None = None
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.error = error

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: object) -> bool:
        return False

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i : i + chunk_size]
            if self.error is not None:
                raise self.error


@pytest.fixture
def response() -> Callable[..., FakeResponse]:
    """Factory for fake streamed responses."""
    return FakeResponse


@pytest.fixture
def session() -> MagicMock:
    """A `requests.Session` double; tests set `get.return_value`/`side_effect`."""
    return MagicMock()
