"""Bounded execution for background searches.

The gateway's windows can only be touched from the UI thread, so a search that
hangs cannot be moved into a sub-process and killed. Instead the work runs in a
daemon thread that receives a cancel event; when the time limit passes the
event is set, the caller gets a WatchdogTimeoutError and the worker stops at
its next check."""

import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout


class WatchdogTimeoutError(Exception):
    """Raised when a watched call exceeds its time limit."""
    pass


def run_with_timeout(func, seconds, *args, name=None, **kwargs):
    """
    Runs func(cancel_event, *args, **kwargs) in a worker thread and waits at most
    `seconds` for it.

    Returns the function's result, re-raises its exception, or raises
    WatchdogTimeoutError after setting the cancel event.
    """
    cancel_event = threading.Event()
    future = Future()

    def worker():
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(func(cancel_event, *args, **kwargs))
        except BaseException as e:
            future.set_exception(e)

    thread = threading.Thread(target=worker, name=name or func.__name__, daemon=True)
    thread.start()

    try:
        return future.result(timeout=seconds)
    except FutureTimeout:
        cancel_event.set()
        raise WatchdogTimeoutError(
            f"'{getattr(func, '__name__', func)}' timed out after {seconds}s."
        )
