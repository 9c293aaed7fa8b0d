from __future__ import annotations

from typing import List, Optional


class ListingsError(Exception):
    """Base class for errors raised by the listings core."""


class UpstreamUnreachable(ListingsError):
    """An upstream provider gave no usable answer (timeout, connection error or non-2xx status)."""

    def __init__(self, source: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
        self.status_code = status_code


class InvalidFilter(ListingsError):
    """Query parameters violate one or more validation rules."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)
