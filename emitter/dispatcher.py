"""Event emitter - dispatches named events to registered listeners.

Listeners run synchronously, in registration order, inside emit(). A listener
may return a future, a coroutine or a then-able; the emitter then finishes its
bookkeeping (listened flag, once removal, result) when that value settles.
"""

import asyncio
import inspect
from typing import Any, Mapping, Optional, Union

from .config import settings
from .logger import log_exception, logger
from .results import ResultSet
from .types import (
    EmitterOptions,
    Listener,
    ListenerData,
    ListenerEquality,
    ListenerLimits,
    WarningSink,
)
from .utils import is_promise_like, listener_source

# Returned by an isolated listener call that raised
_FAILED = object()


@log_exception("Listener for event '{event_name}' raised", default_return=_FAILED)
def _invoke_isolated(event_name: str, listener: Listener, args: tuple) -> Any:
    return listener(*args)


def _describe(listener: Listener) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)


class Emitter:
    """Dispatches events to registered listeners.

    Example:
        emitter = Emitter(limits={"message": 10})
        emitter.on("message", lambda text: text.upper())
        emitter.emit("message", "hi")  # ResultSet(['HI'], pending=0)
    """

    def __init__(
        self,
        options: Union[EmitterOptions, Mapping[str, Any], None] = None,
        limits: Optional[ListenerLimits] = None,
        *,
        warn: Optional[WarningSink] = None,
    ):
        """Initialize the emitter.

        Args:
            options: EmitterOptions or a mapping of option values; missing
                values fall back to the process settings
            limits: Recommended maximum listener count per event name. Only
                used to log a one-time warning, registration never fails.
            warn: Called with the limit warning message, defaults to the
                package logger
        """
        self.options = Emitter._handle_options(options)
        self.limits: Optional[dict[str, Optional[int]]] = (
            dict(limits) if limits is not None else None
        )
        self.warned = False
        self._warn: WarningSink = warn if warn is not None else logger.warning
        # event name -> (listener, metadata) pairs, both in registration order.
        # A list so that unhashable callables can be registered too.
        self._listeners: dict[str, list[tuple[Listener, ListenerData]]] = {}

    def __repr__(self) -> str:
        return (
            f"<Emitter events={len(self._listeners)} "
            f"listeners={self.listener_count()}>"
        )

    # Registration

    def on(self, event_name: str, listener: Listener) -> "Emitter":
        """Register a listener for an event."""
        return self._register(event_name, listener, once=False)

    def once(self, event_name: str, listener: Listener) -> "Emitter":
        """Register a listener that is removed after its first invocation."""
        return self._register(event_name, listener, once=True)

    def once_async(self, event_name: str) -> asyncio.Future[list[Any]]:
        """Return a future resolved with the arguments of the next emit.

        Must be called from a running event loop. The future has no timeout:
        if the event is never emitted again it never resolves.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[list[Any]] = loop.create_future()

        def resolve(*args: Any) -> None:
            if future.done():
                return
            try:
                future.set_result(list(args))
            except Exception as e:
                future.set_exception(e)

        self.once(event_name, resolve)
        return future

    def off(self, event_name: str, listener: Optional[Listener] = None) -> "Emitter":
        """Remove every registration of ``listener`` under ``event_name``.

        Matching follows ``options.listener_equality``. Without a listener
        nothing matches and the call does nothing.
        """
        registrations = self._listeners.get(event_name)
        if registrations is None:
            return self

        if listener is not None:
            kept = []
            for registered, data in registrations:
                if self._matches(registered, listener):
                    logger.debug(
                        f"Removed listener {_describe(registered)} from '{event_name}'"
                    )
                else:
                    kept.append((registered, data))
            registrations[:] = kept

        if not registrations:
            del self._listeners[event_name]
        return self

    # Dispatch

    def emit(self, event_name: str, *args: Any) -> ResultSet:
        """Invoke every listener of ``event_name`` with ``args``.

        Returns the set of listener results. Results of listeners returning a
        future, coroutine or then-able are added to the same set once they
        settle, after this method has returned.

        A listener that raises aborts the rest of the dispatch unless
        ``options.isolate_errors`` is set, in which case the error is logged
        and the remaining listeners still run.
        """
        results = ResultSet()
        registrations = self._listeners.get(event_name)
        if not registrations:
            return results

        # Snapshot so once-listeners can be removed while we iterate
        for listener, data in list(registrations):
            if not self._is_registered(event_name, listener, data):
                continue
            if data.suspended:
                continue

            if self.options.isolate_errors:
                value = _invoke_isolated(event_name, listener, args)
                if value is _FAILED:
                    continue
            else:
                value = listener(*args)

            if is_promise_like(value):
                self._settle_later(event_name, listener, data, value, results)
            else:
                self._settle(event_name, listener, data, value, results)

        return results

    # Introspection

    def has_listener(
        self, event_name: str, listener: Optional[Listener] = None
    ) -> bool:
        """Check whether the event has any listener, or one matching ``listener``."""
        registrations = self._listeners.get(event_name)
        if not registrations:
            return False
        if listener is None:
            return True
        return any(
            self._matches(registered, listener) for registered, _ in registrations
        )

    def is_listened(self, event_name: str) -> bool:
        """Check whether a registered listener of the event has fired."""
        registrations = self._listeners.get(event_name, [])
        return any(data.listened for _, data in registrations)

    def listener_count(self, event_name: Optional[str] = None) -> int:
        """Listener count of one event, or of the whole emitter without a name."""
        if event_name is not None:
            return len(self._listeners.get(event_name, []))
        return sum(len(registrations) for registrations in self._listeners.values())

    def event_names(self) -> list[str]:
        """Event names with at least one listener, in registration order."""
        return list(self._listeners)

    def listener_data(
        self, event_name: str, listener: Listener
    ) -> Optional[ListenerData]:
        """Metadata of the registration of ``listener`` under ``event_name``."""
        for registered, data in self._listeners.get(event_name, []):
            if registered is listener or registered == listener:
                return data
        return None

    def suspend(self, event_name: str, listener: Listener) -> "Emitter":
        """Keep the listener registered but skip it on emit."""
        data = self.listener_data(event_name, listener)
        if data is not None:
            data.suspended = True
        return self

    def resume(self, event_name: str, listener: Listener) -> "Emitter":
        """Undo suspend()."""
        data = self.listener_data(event_name, listener)
        if data is not None:
            data.suspended = False
        return self

    # Internal logic

    def _register(self, event_name: str, listener: Listener, once: bool) -> "Emitter":
        # Registering the same listener twice keeps the first registration
        if self.listener_data(event_name, listener) is None:
            registrations = self._listeners.setdefault(event_name, [])
            registrations.append((listener, ListenerData.create(once=once)))
            logger.debug(
                f"Registered {'once ' if once else ''}listener "
                f"{_describe(listener)} for '{event_name}'"
            )
        self._check_limit(event_name, self.listener_count(event_name))
        return self

    def _check_limit(self, event_name: str, size: int) -> None:
        if self.limits is None or self.warned or not self.options.limit_warn:
            return
        limit = self.limits.get(event_name)
        if limit is None:
            return
        # Warns while the listener count is still below the limit
        if limit > size:
            self._warn(
                f"Listener limit is {limit} for event '{event_name}', which now "
                f"has {size} listener(s). Limits can be changed with the "
                f"limits argument of Emitter()."
            )
            self.warned = True

    def _matches(self, registered: Listener, listener: Listener) -> bool:
        if self.options.listener_equality is ListenerEquality.SOURCE:
            return listener_source(registered) == listener_source(listener)
        return registered == listener

    def _is_registered(
        self, event_name: str, listener: Listener, data: ListenerData
    ) -> bool:
        return any(
            registered is data for _, registered in self._listeners.get(event_name, [])
        )

    def _remove_registration(
        self, event_name: str, listener: Listener, data: ListenerData
    ) -> None:
        registrations = self._listeners.get(event_name)
        if registrations is None:
            return
        index = next(
            (i for i, (_, registered) in enumerate(registrations) if registered is data),
            None,
        )
        if index is None:
            return
        del registrations[index]
        if not registrations:
            del self._listeners[event_name]
        logger.debug(f"Removed once listener {_describe(listener)} from '{event_name}'")

    @staticmethod
    def _handle_options(
        options: Union[EmitterOptions, Mapping[str, Any], None],
    ) -> EmitterOptions:
        defaults = settings.default_options()
        if options is None:
            return EmitterOptions(**defaults)
        if isinstance(options, EmitterOptions):
            given = options.model_dump(exclude_unset=True)
        else:
            given = dict(options)
        return EmitterOptions.model_validate({**defaults, **given})

    def _settle(
        self,
        event_name: str,
        listener: Listener,
        data: ListenerData,
        value: Any,
        results: ResultSet,
    ) -> None:
        data._mark_listened()
        if data.once:
            self._remove_registration(event_name, listener, data)
        results.add(value)

    def _settle_later(
        self,
        event_name: str,
        listener: Listener,
        data: ListenerData,
        value: Any,
        results: ResultSet,
    ) -> None:
        if not inspect.isawaitable(value) and not isinstance(value, asyncio.Future):
            # then-able
            results._track()

            def on_fulfilled(*settled: Any) -> None:
                try:
                    self._settle(
                        event_name,
                        listener,
                        data,
                        settled[0] if settled else None,
                        results,
                    )
                finally:
                    results._untrack()

            value.then(on_fulfilled)
            return

        if isinstance(value, asyncio.Future):
            future = value
        else:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(value):
                    value.close()
                raise
            future = asyncio.ensure_future(value, loop=loop)

        results._track()

        def on_done(done: asyncio.Future) -> None:
            try:
                if done.cancelled():
                    logger.warning(
                        f"Result of listener {_describe(listener)} for event "
                        f"'{event_name}' was cancelled"
                    )
                    return
                error = done.exception()
                if error is not None:
                    logger.error(
                        f"Listener {_describe(listener)} for event '{event_name}' "
                        f"failed: {type(error).__name__}: {error}",
                        exc_info=error,
                    )
                    return
                self._settle(event_name, listener, data, done.result(), results)
            finally:
                results._untrack()

        future.add_done_callback(on_done)


# Global emitter instance
emitter = Emitter()
