"""Turns the gateway's window list into lifecycle events.

Polled from the UI thread's idle hook. Windows that appear produce OPENED,
windows that disappear produce CLOSED, and a change of the active window
produces DEACTIVATED for the old one and ACTIVATED for the new one. The pump
keeps the only long-lived references to live window handles and tells the
backend to forget a window once its CLOSED event has been handled."""

from gatewaylogin.events import EventKind, LifecycleEvent


class WindowEventPump:
    def __init__(self, backend, on_event, audit):
        self.backend = backend
        self.on_event = on_event
        self.audit = audit
        self._windows = {}
        self._active_id = None

    @property
    def open_windows(self):
        return list(self._windows.values())

    def poll(self):
        try:
            current = self.backend.enumerate_open_windows()
        except Exception as e:
            self.audit.log_message(f"Window enumeration failed: {e}")
            return

        seen = {}
        for window in current:
            seen.setdefault(self.backend.window_id(window), window)

        opened = [wid for wid in seen if wid not in self._windows]
        closed = [wid for wid in self._windows if wid not in seen]

        for wid in opened:
            # keep the first handle we saw so references held elsewhere stay valid
            self._windows[wid] = seen[wid]
            self._emit(self._windows[wid], EventKind.OPENED)

        active = self.backend.active_window(self.open_windows)
        active_id = None if active is None else self.backend.window_id(active)
        if active_id != self._active_id:
            previous = self._windows.get(self._active_id)
            self._active_id = active_id
            if previous is not None:
                self._emit(previous, EventKind.DEACTIVATED)
            if active is not None:
                self._emit(self._windows[active_id], EventKind.ACTIVATED)

        # refresh cached titles so CLOSED handlers see the latest one
        for wid in seen:
            self.backend.window_title(self._windows[wid])

        for wid in closed:
            window = self._windows.pop(wid)
            if wid == self._active_id:
                self._active_id = None
            self._emit(window, EventKind.CLOSED)
            self.backend.forget(window)

    def _emit(self, window, kind):
        self.on_event(LifecycleEvent(window, kind))
