"""Finds the gateway main window once it is ready and opens its configuration."""

import threading

from gatewaylogin import settings as config
from gatewaylogin.backends.base import WindowGoneError
from gatewaylogin.utils.watchdog import WatchdogTimeoutError, run_with_timeout

CONFIGURE_MENU = "Configure"
SETTINGS_MENU_ITEM = "Settings"


class MainWindowDiscovery:
    def __init__(self, login, timeout=config.DISCOVERY_TIMEOUT, interval=config.DISCOVERY_INTERVAL):
        self.login = login
        self.timeout = timeout
        self.interval = interval
        self._worker = None
        self._lock = threading.Lock()

    @property
    def running(self):
        return self._worker is not None and self._worker.is_alive()

    def start(self):
        """Runs one bounded search on its own worker thread; joins the running one if any."""
        with self._lock:
            if self.running:
                self.login.audit.log_message("Main window discovery already running")
                return self._worker
            self._worker = threading.Thread(target=self.run, name="main-window-discovery", daemon=True)
            self._worker.start()
            return self._worker

    def run(self):
        """Searches for at most `timeout` seconds. Returns the main window or None."""
        audit = self.login.audit
        try:
            return run_with_timeout(self.search, self.timeout, name="main-window-search")
        except WatchdogTimeoutError as e:
            audit.log_message(f"Main window not found within {self.timeout} seconds, giving up: {e}")
        except Exception as e:
            audit.log_error(e)
        return None

    def search(self, cancel_event):
        """Polls every `interval` seconds until the main window is found or the search is cancelled."""
        while not cancel_event.is_set():
            self.login.audit.log_message("finding main window...")
            window = self.login.ui.call(self.find_once)
            if window is not None:
                return window
            self.login.audit.log_message("main window not found.")
            cancel_event.wait(self.interval)
        return None

    def find_once(self):
        """
        One scan of the open windows, on the UI thread. The main window is the
        one with the Configure/Settings menu entry; it is recorded and the
        configuration window is opened.
        """
        backend = self.login.backend
        for window in self.login.open_windows():
            try:
                backend.refresh(window)
                menu_item = backend.find_menu_item(window, CONFIGURE_MENU, SETTINGS_MENU_ITEM)
            except WindowGoneError:
                continue
            if menu_item is None:
                continue

            self.login.audit.log_message(
                f"found main window (Window title: [{backend.window_title(window)}] - "
                f"Window name: [{backend.window_system_name(window)}])"
            )
            self.login.state.main_window = window
            backend.activate(menu_item)
            return window
        return None
