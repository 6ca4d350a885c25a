import os
import logging
import traceback
from logging.handlers import TimedRotatingFileHandler

LOG_FILE_NAME = "ib-gateway-login.log"


class GatewayLogger:
    """Append-only line sink for everything the automation sees and does."""

    def __init__(self, log_dir="logs", filename=LOG_FILE_NAME, level=logging.INFO):
        os.makedirs(log_dir, exist_ok=True)
        self.log_dir = log_dir
        self.path = os.path.join(log_dir, filename)

        # Configure daily rotation at midnight
        self.handler = TimedRotatingFileHandler(
            filename=self.path,
            when="midnight",
            interval=1,
            backupCount=30  # Keep 30 days of history
        )
        self.handler.setFormatter(logging.Formatter('%(asctime)s %(message)s'))

        # One logger per file so two instances (tests, restarts) never share handlers
        self.logger = logging.getLogger(f"gatewaylogin.{os.path.abspath(self.path)}")
        self.logger.setLevel(level)
        self.logger.propagate = False
        if not self.logger.handlers:
            self.logger.addHandler(self.handler)
        else:
            self.handler.close()
            self.handler = self.logger.handlers[0]

    def log_message(self, text):
        self.logger.info(text)

    def log_error(self, error):
        """Writes the error, with its traceback when one is attached."""
        if isinstance(error, BaseException):
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            self.logger.error(f"Error: {trace.rstrip()}")
        else:
            self.logger.error(f"Error: {error}")

    def log_snapshot(self, lines, event_type="DEBUG"):
        """Writes a multi-line dump (window structure etc.), one prefixed line each."""
        for line in lines:
            self.logger.info(f"{event_type}: {line}")

    def close(self):
        self.logger.removeHandler(self.handler)
        self.handler.close()
