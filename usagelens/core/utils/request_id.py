from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

_REQUEST_ID: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return _REQUEST_ID.get()


def new_request_id() -> str:
    return uuid4().hex[:12]


@contextmanager
def bind_request_id(value: str | None = None) -> Iterator[str]:
    """Bind a correlation id for one HTTP request or one poll cycle."""
    request_id = value or _REQUEST_ID.get() or new_request_id()
    token = _REQUEST_ID.set(request_id)
    try:
        yield request_id
    finally:
        _REQUEST_ID.reset(token)
