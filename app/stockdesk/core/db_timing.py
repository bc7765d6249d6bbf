"""Per-request accumulator for time spent in database cursor calls.

Sync endpoints run in a worker thread with a copy of the request context, so
the context variable holds a mutable list that the copies share.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

_query_time_ms: ContextVar[list[float] | None] = ContextVar("stockdesk_query_time_ms", default=None)


def start_query_timer() -> Token:
    return _query_time_ms.set([0.0])


def stop_query_timer(token: Token) -> float | None:
    holder = _query_time_ms.get()
    _query_time_ms.reset(token)
    return holder[0] if holder is not None else None


def is_query_timer_active() -> bool:
    return _query_time_ms.get() is not None


def add_query_time(delta_ms: float) -> None:
    holder = _query_time_ms.get()
    if holder is not None:
        holder[0] += delta_ms
