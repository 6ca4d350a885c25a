"""The single execution context that talks to the gateway's UI.

Every backend call and every AutomationState mutation happens here. Other
threads hand work over with post() (fire and forget) or call() (wait for the
result), the same way a Swing worker uses invokeLater/invokeAndWait."""

import queue
import threading
import time
from concurrent.futures import Future


class UiThread:
    def __init__(self, audit, idle=None, idle_interval=0.5):
        self.audit = audit
        self.idle = idle
        self.idle_interval = idle_interval
        self._queue = queue.Queue()
        self._thread = None
        self._owner = None
        self._stopping = threading.Event()

    def is_current(self):
        return self._owner is threading.current_thread()

    def post(self, func, *args, **kwargs):
        self._queue.put((func, args, kwargs))

    def call(self, func, *args, timeout=None, **kwargs):
        """Runs func on the UI thread and returns its result (or raises its exception)."""
        if self._owner is None or self.is_current():
            return func(*args, **kwargs)

        future = Future()

        def task():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(func(*args, **kwargs))
            except BaseException as e:
                future.set_exception(e)

        self.post(task)
        return future.result(timeout=timeout)

    def run_pending(self):
        """Runs everything queued so far in the calling thread. Returns how many ran."""
        count = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return count
            self._run(item)
            count += 1

    def run_forever(self):
        self._owner = threading.current_thread()
        next_idle = time.monotonic()
        while not self._stopping.is_set():
            if self.idle is None:
                timeout = self.idle_interval
            else:
                timeout = max(0.0, next_idle - time.monotonic())
            try:
                self._run(self._queue.get(timeout=timeout))
            except queue.Empty:
                pass
            # the idle hook still gets its turn when the queue never drains
            if self.idle is not None and time.monotonic() >= next_idle:
                self._run((self.idle, (), {}))
                next_idle = time.monotonic() + self.idle_interval

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stopping.clear()
        self._thread = threading.Thread(target=self.run_forever, name="ui-thread", daemon=True)
        self._owner = self._thread
        self._thread.start()
        return self._thread

    def stop(self):
        self._stopping.set()

    def _run(self, item):
        func, args, kwargs = item
        try:
            func(*args, **kwargs)
        except Exception as e:
            self.audit.log_error(e)
