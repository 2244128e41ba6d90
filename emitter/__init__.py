"""
Typed in-process event emitter.

Register listeners with on()/once(), trigger them with emit() and inspect the
registry with has_listener(), is_listened() and listener_count().
"""

from .dispatcher import Emitter, emitter
from .results import ResultSet
from .types import (
    EmitterOptions,
    Listener,
    ListenerData,
    ListenerEquality,
    ListenerLimits,
)
from .utils import is_promise_like

__all__ = [
    "Emitter",
    "EmitterOptions",
    "Listener",
    "ListenerData",
    "ListenerEquality",
    "ListenerLimits",
    "ResultSet",
    "emitter",
    "is_promise_like",
]

__version__ = "1.0.0"
