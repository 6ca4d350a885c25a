"""Watches for an externally requested restart.

Dropping a file named `restart` into the working directory makes the next
configuration pass schedule the gateway's auto restart two minutes out."""

import threading
import time
from pathlib import Path

from gatewaylogin import settings as config


class RestartWatcher:
    def __init__(self, login, marker=config.RESTART_MARKER, interval=config.RESTART_POLL_INTERVAL):
        self.login = login
        self.marker = Path(marker)
        self.interval = interval
        self._thread = None
        self._lock = threading.Lock()

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Starts the watcher thread; a no-op if it is already running."""
        with self._lock:
            if self.running:
                return self._thread
            self._thread = threading.Thread(target=self.run_forever, name="restart-watcher", daemon=True)
            self._thread.start()
            return self._thread

    def run_forever(self):
        self.login.audit.log_message("Start running restart watcher thread...")
        while True:
            try:
                self.poll_once()
            except Exception as e:
                self.login.audit.log_error(e)
            time.sleep(self.interval)

    def poll_once(self):
        """Consumes the marker if present. Returns True when a restart was requested."""
        if not self.marker.exists():
            return False
        try:
            self.marker.unlink()
        except OSError as e:
            # a marker we cannot remove would trigger a restart on every poll
            self.login.audit.log_message(f"failed to clean restart file [{self.marker}]")
            self.login.audit.log_error(e)
            return False

        self.login.audit.log_message("Restart request detected, starting restart...")
        self.login.ui.post(self._request_restart)
        return True

    def _request_restart(self):
        self.login.state.restart_now = True
        self.login.discovery.start()
