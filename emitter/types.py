"""Type definitions for the emitter: listener metadata and emitter options."""

from enum import Enum
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr

# Any callable can be registered; its return value ends up in emit()'s results
Listener = Callable[..., Any]

# Event name -> recommended maximum listener count (None means no limit)
ListenerLimits = Mapping[str, Optional[int]]

# Receives the one-time listener limit warning
WarningSink = Callable[[str], None]


class ListenerEquality(str, Enum):
    """How off() and has_listener() decide a registered listener matches."""

    # registered == given; bound methods of the same object/function match
    IDENTITY = "identity"
    # Same source text (repr when the source is unavailable)
    SOURCE = "source"


class ListenerData(BaseModel):
    """Metadata kept by the registry for a single registration.

    Only ``suspended`` is meant to be changed from outside. ``once`` is fixed
    when the listener is registered, and ``listened``/``listened_times`` are
    advanced by the emitter every time an invocation of the listener settles.
    """

    model_config = ConfigDict(validate_assignment=True)

    suspended: bool = False

    _once: bool = PrivateAttr(default=False)
    _listened: bool = PrivateAttr(default=False)
    _listened_times: int = PrivateAttr(default=0)

    @classmethod
    def create(cls, once: bool) -> "ListenerData":
        data = cls()
        data._once = once
        return data

    @property
    def once(self) -> bool:
        return self._once

    @property
    def listened(self) -> bool:
        return self._listened

    @property
    def listened_times(self) -> int:
        return self._listened_times

    def _mark_listened(self) -> None:
        self._listened = True
        self._listened_times += 1


class EmitterOptions(BaseModel):
    """Options resolved once when an Emitter is constructed."""

    model_config = ConfigDict(frozen=True)

    limit_warn: bool = True
    isolate_errors: bool = False
    listener_equality: ListenerEquality = ListenerEquality.IDENTITY
