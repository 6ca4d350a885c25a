"""Unattended IB Gateway login.

GatewayLogin wires everything together: the platform backend that can see the
gateway's windows, the UI thread that is the only place those windows are
touched, the event pump feeding the dispatcher, and the handler chain with its
helpers (two-factor tracker, main window discovery, restart watcher).
Attach it to a running gateway with run()."""

import sys
import threading
from datetime import datetime

from gatewaylogin import settings as config
from gatewaylogin.discovery import MainWindowDiscovery
from gatewaylogin.dispatcher import Dispatcher
from gatewaylogin.handlers import LoginWindowHandler, UnknownWindowHandler, build_handler_chain
from gatewaylogin.pump import WindowEventPump
from gatewaylogin.restart_watcher import RestartWatcher
from gatewaylogin.state import AutomationState
from gatewaylogin.two_factor import TwoFactorTracker
from gatewaylogin.ui_thread import UiThread
from gatewaylogin.utils.logger import GatewayLogger


class GatewayLogin:
    def __init__(self, settings, backend=None, log_dir=config.LOG_DIR, audit=None,
                 restart_marker=config.RESTART_MARKER, poll_interval=config.POLL_INTERVAL,
                 clock=datetime.now, scheduler=None):
        self.settings = settings
        self.clock = clock
        self._scheduler = scheduler

        # 1. Logging & state
        self.audit = audit or GatewayLogger(log_dir)
        self.state = AutomationState()

        # 2. Platform backend
        self.backend = backend if backend is not None else self._setup_backend()

        # 3. Execution context and helpers
        self.pump = WindowEventPump(self.backend, self.on_event, self.audit)
        self.ui = UiThread(self.audit, idle=self.pump.poll, idle_interval=poll_interval)
        self.tracker = TwoFactorTracker(self.state, clock)
        self.discovery = MainWindowDiscovery(self)
        self.restart_watcher = RestartWatcher(self, marker=restart_marker)

        # 4. Handler chain
        self.handlers = build_handler_chain(self)
        self.dispatcher = Dispatcher(self, self.handlers, UnknownWindowHandler(self))

    def _setup_backend(self):
        if sys.platform == 'win32':
            from gatewaylogin.backends.windows import WindowsBackend
            return WindowsBackend(config.GATEWAY_EXECUTABLE)
        from gatewaylogin.backends.linux import LinuxBackend
        return LinuxBackend(config.GATEWAY_WM_CLASS)

    @property
    def login_handler(self):
        for handler in self.handlers:
            if isinstance(handler, LoginWindowHandler):
                return handler
        raise LookupError("login handler missing from the chain")

    def run(self):
        """Processes gateway window events on the calling thread until stop()."""
        self.audit.log_message("IBGateway started")
        self.audit.log_message(f"Settings: {self.settings!r}")
        self.ui.run_forever()

    def stop(self):
        self.ui.stop()

    def on_event(self, event):
        self.dispatcher.on_event(event)

    def open_windows(self):
        return self.pump.open_windows

    def schedule_later(self, delay, func, *args):
        """Runs func on the UI thread after `delay` seconds."""
        if self._scheduler is not None:
            return self._scheduler(delay, func, *args)
        timer = threading.Timer(delay, self.ui.post, args=(func,) + args)
        timer.daemon = True
        timer.start()
        return timer

    def close_main_window(self):
        """Posts a close request to the main window, at most once per window."""
        window = self.state.main_window
        if window is None:
            self.audit.log_message("Main window not available, nothing to close")
            return False
        if not self.state.mark_close_requested(window):
            self.audit.log_message("Close already requested for the main window")
            return False

        self.audit.log_message(
            f"Closing main window - Window title: [{self.backend.window_title(window)}] - "
            f"Window name: [{self.backend.window_system_name(window)}]"
        )
        try:
            self.backend.request_close(window)
        except Exception as e:
            self.audit.log_message(f"closeMainWindow error: {e}")
            return False
        self.audit.log_message("close main window message sent")
        return True

    def log_window_contents(self, window):
        self.audit.log_snapshot(self.backend.component_dump(window), "DEBUG")
