import asyncio
import inspect
from typing import Any


def is_promise_like(value: Any) -> bool:
    """Whether a listener's return value settles later.

    Futures, coroutines and other awaitables count, as does any object with a
    callable ``then`` attribute.
    """
    if value is None:
        return False
    if isinstance(value, asyncio.Future) or inspect.isawaitable(value):
        return True
    return callable(getattr(value, "then", None))


def listener_source(listener: Any) -> str:
    """Text used to compare listeners under ListenerEquality.SOURCE."""
    target = getattr(listener, "__func__", listener)
    try:
        return inspect.getsource(target)
    except (OSError, TypeError):
        return repr(listener)
