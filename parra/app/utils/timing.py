"""Throttle and debounce wrappers.

These only shape when a function runs; they make no admission decisions.
Trailing calls run on a ``threading.Timer`` thread, so the wrapped function
must be safe to call from another thread.
"""

import functools
import threading
from typing import Any, Callable, Optional

from parra.app.core.clock import Clock, now_ms

TimerFactory = Callable[[float, Callable[[], None]], Any]


def _start_timer(timer_factory: TimerFactory, delay_ms: int, fn: Callable[[], None]) -> Any:
    timer = timer_factory(delay_ms / 1000, fn)
    timer.daemon = True
    timer.start()
    return timer


def throttle(
    fn: Callable[..., Any],
    delay_ms: int,
    clock: Clock = now_ms,
    timer_factory: TimerFactory = threading.Timer,
) -> Callable[..., None]:
    """Run ``fn`` at most once per ``delay_ms``.

    A call arriving after the delay has passed runs immediately. Calls
    arriving sooner collapse into one trailing call, made with the most
    recent arguments once the delay has passed.

    The returned wrapper has a ``cancel()`` method that drops any pending
    trailing call.
    """
    lock = threading.Lock()
    last_call: Optional[int] = None
    pending: Optional[Any] = None
    # Bumped on every call so a timer that fired late knows it was superseded
    generation = 0

    def _cancel_pending() -> None:
        nonlocal pending, generation
        generation += 1
        if pending is not None:
            pending.cancel()
            pending = None

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        nonlocal last_call, pending
        with lock:
            now = clock()
            _cancel_pending()

            if last_call is None or now - last_call >= delay_ms:
                last_call = now
                run_now = True
            else:
                scheduled = generation

                def _trailing() -> None:
                    nonlocal last_call, pending
                    with lock:
                        if generation != scheduled:
                            return
                        last_call = clock()
                        pending = None
                    fn(*args, **kwargs)

                pending = _start_timer(timer_factory, delay_ms - (now - last_call), _trailing)
                run_now = False

        if run_now:
            fn(*args, **kwargs)

    def cancel() -> None:
        with lock:
            _cancel_pending()

    wrapper.cancel = cancel
    return wrapper


def debounce(
    fn: Callable[..., Any],
    delay_ms: int,
    timer_factory: TimerFactory = threading.Timer,
) -> Callable[..., None]:
    """Run ``fn`` once, ``delay_ms`` after the latest call.

    Every call cancels the previously scheduled one. The returned wrapper has
    a ``cancel()`` method.
    """
    lock = threading.Lock()
    pending: Optional[Any] = None

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        nonlocal pending
        with lock:
            if pending is not None:
                pending.cancel()
            pending = _start_timer(timer_factory, delay_ms, functools.partial(fn, *args, **kwargs))

    def cancel() -> None:
        nonlocal pending
        with lock:
            if pending is not None:
                pending.cancel()
                pending = None

    wrapper.cancel = cancel
    return wrapper
