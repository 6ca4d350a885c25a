"""
Login settings and runtime tunables.

Credentials come from the environment, exactly once, at startup:
    export IB_USERNAME="your_username"
    export IB_PASSWORD="your_password"
    export IB_TRADING_MODE="paper"        # or "live"
    export IB_PORT_NUMBER="4002"
"""

import os
from dataclasses import dataclass
from enum import Enum


class ConfigurationError(ValueError):
    """Raised when the startup configuration is missing or invalid."""
    pass


class TradingMode(str, Enum):
    LIVE = "live"
    PAPER = "paper"


@dataclass(frozen=True)
class LoginSettings:
    """Immutable login configuration, read-only for the process lifetime."""
    username: str
    password: str
    trading_mode: TradingMode
    port_number: int

    @property
    def is_live(self):
        return self.trading_mode is TradingMode.LIVE

    def __repr__(self):
        # never leak the password into logs or tracebacks
        return (f"LoginSettings(username={self.username!r}, password='***', "
                f"trading_mode={self.trading_mode.value!r}, port_number={self.port_number})")

    @classmethod
    def from_env(cls, environ=None):
        """Builds the settings from IB_USERNAME, IB_PASSWORD, IB_TRADING_MODE and IB_PORT_NUMBER."""
        environ = os.environ if environ is None else environ

        missing = [name for name in ("IB_USERNAME", "IB_PASSWORD", "IB_TRADING_MODE", "IB_PORT_NUMBER")
                   if not environ.get(name)]
        if missing:
            raise ConfigurationError(
                "Gateway login not configured. Set environment variables:\n"
                + "\n".join(f"  export {name}=..." for name in missing)
            )

        mode = environ["IB_TRADING_MODE"].strip().lower()
        try:
            trading_mode = TradingMode(mode)
        except ValueError:
            raise ConfigurationError(
                f"IB_TRADING_MODE must be 'live' or 'paper', got {environ['IB_TRADING_MODE']!r}"
            )

        try:
            port_number = int(environ["IB_PORT_NUMBER"])
        except ValueError:
            raise ConfigurationError(
                f"IB_PORT_NUMBER must be an integer, got {environ['IB_PORT_NUMBER']!r}"
            )
        if not 0 < port_number < 65536:
            raise ConfigurationError(f"IB_PORT_NUMBER out of range: {port_number}")

        return cls(
            username=environ["IB_USERNAME"],
            password=environ["IB_PASSWORD"],
            trading_mode=trading_mode,
            port_number=port_number,
        )


# =============================================================================
# RUNTIME TUNABLES (env overrides, defaults suit a stock gateway install)
# =============================================================================
LOG_DIR = os.environ.get("IB_LOGIN_LOG_DIR", "logs")
GATEWAY_EXECUTABLE = os.environ.get("IB_GATEWAY_EXECUTABLE", "ibgateway.exe")
GATEWAY_WM_CLASS = os.environ.get("IB_GATEWAY_WM_CLASS", "ibgateway")
POLL_INTERVAL = float(os.environ.get("IB_LOGIN_POLL_INTERVAL", "0.5"))

# Main window discovery
DISCOVERY_TIMEOUT = 30   # seconds, per attempt
DISCOVERY_INTERVAL = 1   # seconds between window scans

# Restart requests
RESTART_MARKER = "restart"
RESTART_POLL_INTERVAL = 10

# Two-factor authentication
# The gateway gives up on a 2FA prompt after 180s; anything closing 150s or
# later after the prompt is treated as a timeout.
TWO_FACTOR_TIMEOUT = 150
TWO_FACTOR_MAX_ATTEMPTS = 3
TWO_FACTOR_RETRY_DELAY = 10  # seconds, multiplied by the attempt number

# Scheduled daily restart ("11:45" + PM = 23:45)
DEFAULT_RESTART_TIME = "11:45"
DEFAULT_RESTART_PERIOD = "PM"
RESTART_NOW_DELAY_MINUTES = 2
