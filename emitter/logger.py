import functools
import gzip
import inspect
import logging
import logging.handlers
import os
import shutil
import sys
from gzip import GzipFile
from pathlib import Path
from typing import Callable, ParamSpec, TypeVar

from .config import Settings, settings

logger = logging.getLogger("emitter")
logger.addHandler(logging.NullHandler())
formatter = logging.Formatter(
    "%(asctime)s %(levelname)s [%(module)s:%(funcName)s:%(lineno)d] %(message)s"
)


def rotator(source, dest):
    with open(source, "rb") as f_in:
        with gzip.open(dest + ".gz", "wb") as f_out:
            assert isinstance(f_out, GzipFile)
            shutil.copyfileobj(f_in, f_out)
    os.remove(source)


def configure_logging(config: Settings = settings) -> None:
    """Attach the file and stdout handlers the settings ask for.

    Called once on import with the process settings. Calling it again replaces
    the handlers added by a previous call, so tests can point it at a
    temporary directory.
    """
    for handler in list(logger.handlers):
        if getattr(handler, "_emitter_managed", False):
            logger.removeHandler(handler)
            handler.close()

    # Unset defers to the host application's logging configuration
    logger.setLevel(config.log_level.upper() if config.log_level else logging.NOTSET)

    if config.logs_dir is not None:
        logs_dir = Path(config.logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            logs_dir / "emitter.log", when="midnight"
        )
        file_handler.setFormatter(formatter)
        file_handler.rotator = rotator
        file_handler._emitter_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    if config.log_to_stdout:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler._emitter_managed = True  # type: ignore[attr-defined]
        logger.addHandler(stream_handler)


configure_logging()


P = ParamSpec("P")
R = TypeVar("R")


def log_exception(
    prefix: str = "",
    default_return: R | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to wrap a function with try-except and log exceptions.

    Supports both sync and async functions while preserving type signatures.
    The emitter applies it to listeners when ``isolate_errors`` is enabled.

    Args:
        prefix: Optional prefix to prepend to the error message. Braces are
            filled from the bound call arguments, e.g. "listener for {event}".
        default_return: Value returned instead of raising

    Usage:
        @log_exception("Refresh {name}")
        async def refresh(name: str):
            ...

        @log_exception(default_return=False)
        def check():
            ...
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        func_name = getattr(func, "__qualname__", repr(func))
        try:
            sig = inspect.signature(func)
        except (TypeError, ValueError):
            # Builtins and some C callables expose no signature
            sig = None

        def format_args_kwargs(args: tuple, kwargs: dict) -> tuple[dict, str]:
            """
            Format function arguments for logging with parameter names.

            Returns:
                (bound_arguments_dict, formatted_string)
            """
            if sig is not None:
                try:
                    bound = sig.bind(*args, **kwargs)
                    bound.apply_defaults()
                    params = ", ".join(
                        f"{k}={v!r}" for k, v in bound.arguments.items()
                    )
                    return bound.arguments, f"[{params}] " if params else ""
                except TypeError as e:
                    logger.warning(
                        f"Failed to bind arguments for function {func_name}: {e}",
                        stacklevel=3,  # format_args_kwargs -> wrapper -> user code
                    )
            parts = []
            if args:
                parts.append(f"args={args!r}")
            if kwargs:
                parts.append(f"kwargs={kwargs!r}")
            return {}, f"[{', '.join(parts)}] " if parts else ""

        def format_prefix(bound_args: dict) -> str:
            """Format prefix with parameter substitution if braces present."""
            if not prefix:
                return ""

            if "{" in prefix and "}" in prefix:
                try:
                    return f"{prefix.format_map(bound_args)}: "
                except (KeyError, ValueError, IndexError) as e:
                    logger.warning(
                        f"Failed to format prefix '{prefix}' with arguments: {e}",
                        stacklevel=3,  # format_prefix -> wrapper -> user code
                    )
            return f"{prefix}: "

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    bound_args, args_str = format_args_kwargs(args, kwargs)
                    prefix_str = format_prefix(bound_args)
                    logger.error(
                        f"{args_str}{prefix_str}{type(e).__name__}: {e}",
                        exc_info=True,
                        stacklevel=2,
                    )
                    return default_return  # type: ignore[return-value]

            return async_wrapper  # type: ignore[return-value]

        else:

            @functools.wraps(func)
            def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    bound_args, args_str = format_args_kwargs(args, kwargs)
                    prefix_str = format_prefix(bound_args)
                    logger.error(
                        f"{args_str}{prefix_str}{type(e).__name__}: {e}",
                        exc_info=True,
                        stacklevel=2,
                    )
                    return default_return  # type: ignore[return-value]

            return sync_wrapper  # type: ignore[return-value]

    return decorator
