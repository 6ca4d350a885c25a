"""Recognition rules for every gateway window we know how to drive.

Each handler pairs a signature (event kind + title/text/control) with the
action sequence for that window. The dispatcher asks them in order; the first
one whose signature matches claims the event. A handler that recognizes its
window but cannot find a control it needs raises LayoutMismatchError: that
means the gateway's layout changed and it must show up in the log."""

from datetime import timedelta

from gatewaylogin import settings as config
from gatewaylogin.backends.base import ControlKind, contains, strip_markup
from gatewaylogin.events import EventKind
from gatewaylogin.two_factor import TwoFactorOutcome

MAIN_WINDOW_TITLES = ("IB Gateway", "Interactive Brokers Gateway")
TWO_FACTOR_TITLE = "Second Factor Authentication"
KNOWN_WINDOW_TITLES = (
    TWO_FACTOR_TITLE,
    "Security Code Card Authentication",
    "Enter security code",
)

SETTINGS_PATH = ("Configuration", "API", "Settings")
PRECAUTIONS_PATH = ("Configuration", "API", "Precautions")
LOCK_AND_EXIT_PATH = ("Configuration", "Lock and Exit")


class LayoutMismatchError(Exception):
    """A recognized window is missing a control the handler depends on."""
    pass


class WindowHandler:
    name = "Window"
    events = (EventKind.OPENED,)

    def __init__(self, login):
        self.login = login

    @property
    def backend(self):
        return self.login.backend

    @property
    def state(self):
        return self.login.state

    def log(self, text):
        self.login.audit.log_message(text)

    def __call__(self, window, kind):
        """Returns True when the event was claimed and handled."""
        if kind not in self.events or not self.matches(window, kind):
            return False
        self.handle(window, kind)
        return True

    def matches(self, window, kind):
        raise NotImplementedError

    def handle(self, window, kind):
        raise NotImplementedError

    # --- signature helpers --------------------------------------------
    def title(self, window):
        return self.backend.window_title(window)

    def window_text(self, window):
        return self.backend.window_text(window)

    # --- action helpers ------------------------------------------------
    def require(self, window, kind, match, description, index=0):
        control = self.backend.find_control(window, kind, match, index=index)
        if control is None:
            raise LayoutMismatchError(f"{description} not found")
        return control

    def click(self, window, text, required=True):
        button = self.backend.find_control(window, ControlKind.BUTTON, text)
        if button is None:
            if required:
                raise LayoutMismatchError(f"Button not found: [{text}]")
            self.log(f"Button not found: [{text}]")
            return False
        self.log(f"Click button: [{text}]")
        self.backend.activate(button)
        return True

    def check(self, window, text, checked, kind=ControlKind.CHECK_BOX, required=True):
        control = self.backend.find_control(window, kind, text)
        if control is None:
            if required:
                raise LayoutMismatchError(f"{kind.value.capitalize()} not found: [{text}]")
            return False
        if self.backend.is_checked(control) != checked:
            verb = "Select" if checked else "Unselect"
            noun = "checkbox" if kind is ControlKind.CHECK_BOX else kind.value
            self.log(f"{verb} {noun}: [{text}]")
            self.backend.set_checked(control, checked)
        return True

    def close_main_window(self, reason):
        self.log(reason)
        self.login.close_main_window()


class LoginWindowHandler(WindowHandler):
    """
    The main login frame:
    - selects the "IB API" toggle button
    - selects the "Live Trading" or "Paper Trading" toggle button
    - enters the user name and password
    - selects the "Use SSL" check box if there is one
    - clicks "Log In" or "Paper Log In"
    """
    name = "Login"

    def matches(self, window, kind):
        return self.backend.is_frame(window) and self.title(window) in MAIN_WINDOW_TITLES

    def handle(self, window, kind):
        login_settings = self.login.settings
        self.state.main_window = window
        self.log(f"Main window - Window title: [{self.title(window)}] - "
                 f"Window name: [{self.backend.window_system_name(window)}]")

        ib_api = self.backend.find_control(window, ControlKind.TOGGLE_BUTTON, "IB API")
        if ib_api is None:
            self.log("Unexpected window found")
            self.login.log_window_contents(window)
            raise LayoutMismatchError("IB API toggle button not found")
        self._select_toggle(ib_api, "IB API")

        mode_text = "Live Trading" if login_settings.is_live else "Paper Trading"
        mode_button = self.require(window, ControlKind.TOGGLE_BUTTON, mode_text, "Trading Mode toggle button")
        self._select_toggle(mode_button, mode_text)
        self.log(f"Trading mode: {login_settings.trading_mode.value}")

        user_field = self.require(window, ControlKind.TEXT_FIELD, None, "IB API user name text field")
        self.backend.set_text(user_field, login_settings.username)
        password_field = self.require(window, ControlKind.TEXT_FIELD, None, "IB API password text field", index=1)
        self.backend.set_text(password_field, login_settings.password)

        if not self.check(window, "Use SSL", True, required=False):
            self.log("Use SSL checkbox not found")

        self.click(window, "Log In" if login_settings.is_live else "Paper Log In")

    def _select_toggle(self, button, text):
        if not self.backend.is_checked(button):
            self.log(f"Click button: [{text}]")
            self.backend.activate(button)

    def retry(self):
        """Runs the login sequence again on the last known main window."""
        window = self.state.main_window
        if window is None:
            self.log("Login retry skipped: main window not available")
            return
        try:
            self.backend.refresh(window)
            if not self(window, EventKind.OPENED):
                self.log(f"Login retry skipped: window [{self.title(window)}] is not the login window")
        except Exception as e:
            self.log(f"HandleLoginWindow error: {e}")
            self.login.audit.log_error(e)


class LoginFailedHandler(WindowHandler):
    name = "LoginFailed"

    def matches(self, window, kind):
        return self.title(window) == "Login failed"

    def handle(self, window, kind):
        self.log(f"Login failed: {self.backend.text_pane_text(window)}")
        self.click(window, "OK")


class ServerDisconnectedHandler(WindowHandler):
    name = "ServerDisconnected"
    phrase = "Connection to server failed: Server disconnected, please try again"

    def matches(self, window, kind):
        return self.phrase in self.window_text(window)

    def handle(self, window, kind):
        self.log(self.window_text(window).strip())
        self.click(window, "OK")
        self.close_main_window("Server disconnection detected, closing IBGateway.")


class TooManyFailedAttemptsHandler(WindowHandler):
    name = "TooManyFailedLoginAttempts"
    phrase = "Too many failed login attempts"

    def matches(self, window, kind):
        return self.phrase in self.window_text(window)

    def handle(self, window, kind):
        self.log(self.window_text(window).strip())
        self.click(window, "OK")
        self.close_main_window("Too many failed login attempts, closing IBGateway.")


class PasswordNoticeHandler(WindowHandler):
    name = "PasswordNotice"

    def matches(self, window, kind):
        return "Password Notice" in self.title(window)

    def handle(self, window, kind):
        self.log(f"Password notice: {self.backend.text_pane_text(window)}")
        self.click(window, "OK")


class InitializationHandler(WindowHandler):
    """
    The splash screen closing means the main window is being built: look for it
    in the background and start watching for restart requests.
    """
    name = "Initialization"
    events = (EventKind.CLOSED,)

    def matches(self, window, kind):
        return "Starting application..." in self.title(window)

    def handle(self, window, kind):
        self.login.discovery.start()
        self.login.restart_watcher.start()


class PaperTradingWarningHandler(WindowHandler):
    name = "PaperTradingAccount"

    def matches(self, window, kind):
        return self.backend.find_control(window, ControlKind.LABEL, contains("This is not a brokerage account")) is not None

    def handle(self, window, kind):
        self.click(window, "I understand and accept")


class ConfigurationHandler(WindowHandler):
    """
    The Configuration window opened by main window discovery:
    - API/Settings: clears "Read-Only API", sets the port, enables the API
      message log, clears "Use Account Groups with Allocation Methods"
    - API/Precautions: enables "Bypass Order Precautions for API Orders"
    - Lock and Exit: selects "Auto restart" and sets the restart time
    - clicks "OK"
    """
    name = "Configuration"

    def matches(self, window, kind):
        return "Configuration" in self.title(window)

    def handle(self, window, kind):
        tree = self.require(window, ControlKind.TREE, None, "Configuration tree")

        self._navigate(tree, SETTINGS_PATH)
        self.check(window, "Read-Only API", False)
        port_field = self.require(window, ControlKind.TEXT_FIELD, None, "API Port Number text field")
        port_text = str(self.login.settings.port_number)
        self.log(f"Set API port textbox value: [{port_text}]")
        self.backend.set_text(port_field, port_text)
        self.check(window, "Create API message log file", True)
        # only present on newer gateway versions
        self.check(window, "Use Account Groups with Allocation Methods", False, required=False)

        self._navigate(tree, PRECAUTIONS_PATH)
        self.check(window, "Bypass Order Precautions for API Orders", True)

        self._navigate(tree, LOCK_AND_EXIT_PATH)
        self.check(window, "Auto restart", True, kind=ControlKind.RADIO_BUTTON)
        am_button = self.require(window, ControlKind.RADIO_BUTTON, "AM", "Auto restart AM button")
        pm_button = self.require(window, ControlKind.RADIO_BUTTON, "PM", "Auto restart PM button")
        time_field = self.require(window, ControlKind.TEXT_FIELD, None, "Restart time text field")

        restart_time, period = self.restart_time()
        self.log(f"Set restart time value: [{restart_time}]")
        self.backend.set_text(time_field, restart_time)
        period_button = am_button if period == "AM" else pm_button
        if self.backend.is_checked(period_button):
            self.log(f"Radio button: [{period}] already selected")
        else:
            self.log(f"Select radio button: [{period}]")
            self.backend.set_checked(period_button, True)

        self.click(window, "OK")
        self.log("Configuration settings updated.")

    def _navigate(self, tree, path):
        if not self.backend.select_tree_path(tree, path):
            raise LayoutMismatchError(f"Configuration tree node not found: [{'/'.join(path)}]")

    def restart_time(self):
        """
        ("hh:mm", "AM"|"PM") for the daily auto restart: the default, or two
        minutes from now when a restart was requested.
        """
        if not self.state.take_restart_now():
            return config.DEFAULT_RESTART_TIME, config.DEFAULT_RESTART_PERIOD
        at = self.login.clock() + timedelta(minutes=config.RESTART_NOW_DELAY_MINUTES)
        return at.strftime("%I:%M"), ("AM" if at.hour < 12 else "PM")


class _ButtonHandler(WindowHandler):
    """Windows recognized by title where the only action is one button."""
    title_text = None
    exact = False
    button = None

    def matches(self, window, kind):
        title = self.title(window)
        return title == self.title_text if self.exact else self.title_text in title

    def handle(self, window, kind):
        self.click(window, self.button)


class ExistingSessionDetectedHandler(_ButtonHandler):
    name = "ExistingSessionDetected"
    title_text = "Existing session detected"
    exact = True
    button = "Exit Application"


class ReloginRequiredHandler(_ButtonHandler):
    name = "ReloginRequired"
    title_text = "Re-login is required"
    exact = True
    button = "Re-login"


class FinancialAdvisorWarningHandler(_ButtonHandler):
    name = "FinancialAdvisorWarning"
    title_text = "Financial Advisor Warning"
    button = "Yes"


class ExitSessionSettingHandler(_ButtonHandler):
    name = "ExitSessionSetting"
    events = (EventKind.ACTIVATED,)
    title_text = "Exit Session Setting"
    button = "OK"

    def handle(self, window, kind):
        self.log(f"Content: {' '.join(self.backend.label_lines(window))}")
        super().handle(window, kind)


class AutoRestartConfirmationHandler(WindowHandler):
    name = "EnableAutoRestartConfirmation"
    phrase = "You have elected to have your trading platform restart automatically"

    def matches(self, window, kind):
        return self.phrase in self.backend.text_pane_text(window)

    def handle(self, window, kind):
        self.log(self.backend.text_pane_text(window))
        self.click(window, "OK")


class AutoRestartTokenExpiredHandler(WindowHandler):
    name = "AutoRestartTokenExpired"
    phrase = "Soft token=0 received instead of expected permanent"

    def matches(self, window, kind):
        return self.backend.find_control(window, ControlKind.LABEL, contains(self.phrase)) is not None

    def handle(self, window, kind):
        self.click(window, "OK")
        # only once: a second dialog belongs to the already restarting gateway
        if self.state.mark_auto_restart_token_expired():
            self.close_main_window("Auto-restart token expired, closing IBGateway")


class ViewLogsHandler(WindowHandler):
    name = "ViewLogs"
    export_button = "Export Today Logs..."

    def matches(self, window, kind):
        return "View Logs" in self.title(window)

    def handle(self, window, kind):
        button = self.require(window, ControlKind.BUTTON, self.export_button, f"Button [{self.export_button}]")
        if self.backend.is_enabled(button):
            if self.state.view_logs_window is not None:
                self.log("Replacing pending View Logs window reference")
            self.state.view_logs_window = window
            self.log(f"Click button: [{self.export_button}]")
            self.backend.activate(button)
        else:
            self.click(window, "Cancel")


class ExportFileNameHandler(_ButtonHandler):
    name = "ExportFileName"
    title_text = "Enter export filename"
    button = "Open"


class ExportFinishedHandler(WindowHandler):
    name = "ExportFinished"
    phrase = "Finished exporting logs"

    def matches(self, window, kind):
        return self.backend.find_control(window, ControlKind.OPTION_PANE, contains(self.phrase)) is not None

    def handle(self, window, kind):
        self.click(window, "OK")
        view_logs = self.state.view_logs_window
        self.state.view_logs_window = None
        if view_logs is None:
            self.log("View Logs window no longer available")
            return
        self.backend.refresh(view_logs)
        self.click(view_logs, "Cancel")


class AutoRestartNowHandler(WindowHandler):
    name = "AutoRestartNow"
    phrase = "Would you like to restart now?"

    def matches(self, window, kind):
        return self.phrase in self.window_text(window)

    def handle(self, window, kind):
        self.log(self.window_text(window).strip())
        self.click(window, "No")


class TwoFactorAuthenticationHandler(WindowHandler):
    """
    Opened: picks the IB Key method and confirms. Closed: a close within the
    timeout means the user approved; later means the prompt expired, so the
    login is retried after a growing delay until attempts run out.
    """
    name = "TwoFactorAuthentication"
    events = (EventKind.OPENED, EventKind.CLOSED)
    method = "IB Key"

    def matches(self, window, kind):
        return self.title(window) == TWO_FACTOR_TITLE

    def handle(self, window, kind):
        tracker = self.login.tracker
        if kind is EventKind.OPENED:
            methods = self.backend.find_control(window, ControlKind.LIST)
            if methods is None:
                self.log("Authentication method list not found")
            else:
                self.log(f"Selecting {self.method}")
                if not self.backend.select_list_entry(methods, self.method):
                    self.log(f"Authentication method not listed: [{self.method}]")
            self.click(window, "OK", required=False)
            attempts = tracker.prompted()
            self.log(f"twoFactorConfirmationAttempts: {attempts}/{tracker.max_attempts}")
            return

        outcome = tracker.closed()
        if outcome is TwoFactorOutcome.CONFIRMED:
            self.log("2FA confirmation success")
        elif outcome is TwoFactorOutcome.NOT_PROMPTED:
            self.log("2FA window closed without a pending request")
        elif outcome is TwoFactorOutcome.EXHAUSTED:
            self.log("2FA confirmation timeout")
            self.log("2FA maximum attempts reached, giving up")
        else:
            delay = tracker.retry_delay()
            self.log("2FA confirmation timeout")
            self.log(f"New login attempt with 2FA in {delay} seconds")
            # a 2FA timeout counts as a failed login, wait before retrying
            self.login.schedule_later(delay, self.login.login_handler.retry)


class DisplayMarketDataHandler(WindowHandler):
    name = "DisplayMarketData"
    phrase = "Bid, Ask and Last Size Display Update"

    def matches(self, window, kind):
        return self.phrase in self.window_text(window)

    def handle(self, window, kind):
        self.log(self.window_text(window).strip())
        self.click(window, "I understand - display market data")


class UseSslEncryptionHandler(_ButtonHandler):
    name = "UseSslEncryption"
    title_text = "Use SSL encryption"
    button = "Reconnect using SSL"


class UnknownWindowHandler(WindowHandler):
    """Fallback: dumps unrecognized dialogs so new gateway prompts can be diagnosed."""
    name = "UnknownMessage"

    def matches(self, window, kind):
        return self.backend.is_dialog(window) and self.title(window) not in KNOWN_WINDOW_TITLES

    def handle(self, window, kind):
        self.login.log_window_contents(window)
        self.log(f"Unknown message window detected: {self.window_text(window).strip()}")


HANDLER_CHAIN = (
    LoginWindowHandler,
    LoginFailedHandler,
    ServerDisconnectedHandler,
    TooManyFailedAttemptsHandler,
    PasswordNoticeHandler,
    InitializationHandler,
    PaperTradingWarningHandler,
    ConfigurationHandler,
    ExistingSessionDetectedHandler,
    ReloginRequiredHandler,
    FinancialAdvisorWarningHandler,
    ExitSessionSettingHandler,
    AutoRestartConfirmationHandler,
    AutoRestartTokenExpiredHandler,
    ViewLogsHandler,
    ExportFileNameHandler,
    ExportFinishedHandler,
    AutoRestartNowHandler,
    TwoFactorAuthenticationHandler,
    DisplayMarketDataHandler,
    UseSslEncryptionHandler,
)


def build_handler_chain(login):
    """Instantiates the chain in priority order. The login handler comes first."""
    return [handler_class(login) for handler_class in HANDLER_CHAIN]
