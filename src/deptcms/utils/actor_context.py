"""
Current admin actor for the running request.

The activity recorder attaches this id to every audit row, mirroring the
hosted database's "current authenticated user" behaviour.

Usage:
    actor_id = set_current_actor(admin_id)
    ...
    clear_current_actor()
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_actor_id_var: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)


def set_current_actor(actor_id: Optional[str]) -> Optional[str]:
    _actor_id_var.set(actor_id)
    return actor_id


def get_current_actor() -> Optional[str]:
    return _actor_id_var.get()


def clear_current_actor() -> None:
    _actor_id_var.set(None)


@contextmanager
def acting_as(actor_id: Optional[str]) -> Iterator[Optional[str]]:
    """Scope the current actor to a ``with`` block."""
    token = _actor_id_var.set(actor_id)
    try:
        yield actor_id
    finally:
        _actor_id_var.reset(token)
