"""Completion-callback calling convention over coroutine operations.

Every Redis operation is written once, as a coroutine. ``CompletionClient``
exposes the same operations as functions that schedule the coroutine and
return a future, optionally invoking a callback when it completes::

    future = client.futures.get("key", on_complete=lambda f: print(f.result()))

Called from a thread that is not running the target loop, the future is a
``concurrent.futures.Future`` that can be waited on with ``.result()``.
"""
import asyncio
import concurrent.futures
import functools
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

AnyFuture = Union[asyncio.Future, concurrent.futures.Future]
CompletionCallback = Callable[[AnyFuture], Any]


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def submit(
    operation: Callable[..., Awaitable[Any]],
    /,
    *args: Any,
    on_complete: Optional[CompletionCallback] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    **kwargs: Any,
) -> AnyFuture:
    """Schedule ``operation(*args, **kwargs)`` and return its future.

    Args:
        operation: Coroutine function to run
        on_complete: Called with the finished future (result or error)
        loop: Loop to run on; defaults to the running loop. When it is not
            the running loop the call is thread-safe and returns a
            ``concurrent.futures.Future``.

    Raises:
        RuntimeError: No loop given and none running
    """
    running = _running_loop()
    target = loop or running
    if target is None:
        raise RuntimeError(
            "No running event loop; pass loop= to schedule from another thread"
        )

    if target is running:
        future: AnyFuture = asyncio.ensure_future(operation(*args, **kwargs))
    else:
        future = asyncio.run_coroutine_threadsafe(operation(*args, **kwargs), target)

    if on_complete is not None:
        future.add_done_callback(on_complete)
    return future


class CompletionClient:
    """Future-returning view of an object's coroutine methods.

    Attribute access returns a function with the same parameters as the
    coroutine method plus ``on_complete`` and ``loop`` keyword arguments.
    The underlying coroutine is the only implementation, so both forms
    behave identically.
    """

    def __init__(self, target: Any):
        self._target = target

    def __getattr__(self, name: str) -> Callable[..., AnyFuture]:
        if name.startswith("_"):
            raise AttributeError(name)

        operation = getattr(self._target, name)
        if not inspect.iscoroutinefunction(operation):
            raise AttributeError(
                f"{type(self._target).__name__}.{name} is not an asynchronous operation"
            )

        @functools.wraps(operation)
        def schedule(
            *args: Any,
            on_complete: Optional[CompletionCallback] = None,
            loop: Optional[asyncio.AbstractEventLoop] = None,
            **kwargs: Any,
        ) -> AnyFuture:
            target_loop = loop or getattr(self._target, "_loop", None)
            return submit(operation, *args, on_complete=on_complete, loop=target_loop, **kwargs)

        return schedule

    def __repr__(self) -> str:
        return f"CompletionClient({self._target!r})"
