"""Mutable automation state.

Only the UI thread reads or writes this record; background workers marshal onto
it first. Window references are weak: the gateway owns its windows, we only
remember them for later lookup."""

import weakref


def _ref(window):
    return None if window is None else weakref.ref(window)


def _deref(ref):
    return None if ref is None else ref()


class AutomationState:
    def __init__(self):
        self._main_window = None
        self._view_logs_window = None
        self._closed_main_window = None
        self.auto_restart_token_expired = False
        self.restart_now = False
        self.two_factor_attempts = 0
        self.two_factor_request_time = None

    @property
    def main_window(self):
        return _deref(self._main_window)

    @main_window.setter
    def main_window(self, window):
        self._main_window = _ref(window)

    @property
    def view_logs_window(self):
        return _deref(self._view_logs_window)

    @view_logs_window.setter
    def view_logs_window(self, window):
        self._view_logs_window = _ref(window)

    def mark_auto_restart_token_expired(self):
        """Flips the one-shot flag. Returns True only for the first call."""
        if self.auto_restart_token_expired:
            return False
        self.auto_restart_token_expired = True
        return True

    def take_restart_now(self):
        """Consumes a pending restart request."""
        requested = self.restart_now
        self.restart_now = False
        return requested

    def mark_close_requested(self, window):
        """
        Records that a close request was posted for `window`.
        Returns False if one was already posted for that same window.
        """
        if _deref(self._closed_main_window) is window:
            return False
        self._closed_main_window = _ref(window)
        return True
