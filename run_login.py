"""Attaches the login automation to a running IB Gateway.

Usage:
    export IB_USERNAME=... IB_PASSWORD=... IB_TRADING_MODE=paper IB_PORT_NUMBER=4002
    python run_login.py                     # platform backend, logs in ./logs
    python run_login.py --log-dir /var/log/ibgateway --backend linux

Start it alongside the gateway (same working directory as the `restart` marker)
and leave it running: it logs in, configures the API, confirms 2FA prompts and
keeps the gateway alive through its daily restarts."""

import argparse
import logging
import sys

from gatewaylogin import settings as config
from gatewaylogin.core import GatewayLogin
from gatewaylogin.settings import ConfigurationError, LoginSettings
from gatewaylogin.utils.logger import GatewayLogger


def build_backend(name):
    if name == "windows":
        from gatewaylogin.backends.windows import WindowsBackend
        return WindowsBackend(config.GATEWAY_EXECUTABLE)
    if name == "linux":
        from gatewaylogin.backends.linux import LinuxBackend
        return LinuxBackend(config.GATEWAY_WM_CLASS)
    return None  # let GatewayLogin pick by platform


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Unattended IB Gateway login")
    parser.add_argument("--log-dir", default=config.LOG_DIR, help="directory for ib-gateway-login.log")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--backend", default="auto", choices=["auto", "windows", "linux"])
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        login_settings = LoginSettings.from_env()
    except ConfigurationError as e:
        print(f"[Config] {e}", file=sys.stderr)
        return 2

    audit = GatewayLogger(args.log_dir, level=getattr(logging, args.log_level))
    print(f"[Init] Attaching to IB Gateway on {sys.platform}, logging to {audit.path}")

    login = GatewayLogin(login_settings, backend=build_backend(args.backend), audit=audit)
    try:
        login.run()
    except KeyboardInterrupt:
        audit.log_message("Stopped by user")
    finally:
        audit.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
