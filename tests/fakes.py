"""In-memory gateway windows and a backend that records every UI action."""

from datetime import datetime, timedelta

from gatewaylogin.backends.base import ControlKind, IntrospectionBackend, WindowGoneError


class FakeControl:
    def __init__(self, kind, text="", name=None, value="", checked=False, enabled=True, items=()):
        self.kind = kind
        self.text = text
        self.name = name or text
        self.value = value
        self.checked = checked
        self.enabled = enabled
        self.items = list(items)
        self.owner = None


class FakeWindow:
    def __init__(self, title, system_name="dialog0", controls=(), panels=None, menus=None):
        self.title = title
        self.system_name = system_name
        self.controls = list(controls)
        self.panels = {tuple(path): list(items) for path, items in (panels or {}).items()}
        self.menus = menus or {}
        self.current_panel = None
        self.closed = False
        self.fail_close = False
        for control in self.all_controls():
            control.owner = self

    def all_controls(self):
        yield from self.controls
        for items in self.panels.values():
            yield from items

    def visible_controls(self):
        yield from self.controls
        yield from self.panels.get(self.current_panel, ())

    def __repr__(self):
        return f"FakeWindow({self.title!r})"


class FakeBackend(IntrospectionBackend):
    def __init__(self):
        super().__init__()
        self.windows = []
        self.active = None
        self.actions = []
        self.refreshed = []
        self.forgotten = []

    def _check(self, window):
        if window.closed:
            raise WindowGoneError(window.title)

    # windows
    def enumerate_open_windows(self):
        return [w for w in self.windows if not w.closed]

    def window_id(self, window):
        return id(window)

    def _read_title(self, window):
        self._check(window)
        return window.title

    def _read_system_name(self, window):
        self._check(window)
        return window.system_name

    def is_window_active(self, window):
        self._check(window)
        return window is self.active

    def request_close(self, window):
        self._check(window)
        if window.fail_close:
            raise RuntimeError("close request rejected")
        self.actions.append(("request_close", window.title))

    def refresh(self, window):
        self.refreshed.append(window.title)

    def forget(self, window):
        self.forgotten.append(window.title)

    # controls
    def iter_controls(self, root, kind):
        self._check(root)
        for control in root.visible_controls():
            if control.kind is kind:
                yield control

    def iter_all_controls(self, root):
        return list(root.visible_controls())

    def control_text(self, control):
        return control.text

    def read_text(self, control):
        return control.value if control.kind is ControlKind.TEXT_FIELD else control.text

    def set_text(self, control, value):
        self.actions.append(("set_text", control.owner.title, control.name, value))
        control.value = value

    def is_checked(self, control):
        return control.checked

    def set_checked(self, control, checked):
        self.actions.append(("set_checked", control.owner.title, control.name, checked))
        control.checked = checked

    def is_enabled(self, control):
        return control.enabled

    def activate(self, control):
        self._check(control.owner)
        self.actions.append(("activate", control.owner.title, control.name))
        if control.kind in (ControlKind.TOGGLE_BUTTON, ControlKind.RADIO_BUTTON):
            control.checked = True

    def select_tree_path(self, tree, path):
        window = tree.owner
        self.actions.append(("select_tree_path", window.title, tuple(path)))
        if tuple(path) not in window.panels:
            return False
        window.current_panel = tuple(path)
        return True

    def select_list_entry(self, control, text):
        self.actions.append(("select_list_entry", control.owner.title, text))
        return text in control.items

    def find_menu_item(self, window, menu, item):
        self._check(window)
        if item not in window.menus.get(menu, ()):
            return None
        entry = FakeControl(None, item)
        entry.owner = window
        return entry

    def describe(self, control):
        kind = control.kind.value if control.kind else "menu item"
        return f"[{kind}] - Text: [{control.text}]"

    def actions_on(self, title):
        return [action for action in self.actions if action[1] == title]


class FakeClock:
    def __init__(self, start=datetime(2026, 10, 18, 9, 30)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# ----------------------------------------------------------------------
# Gateway window builders
# ----------------------------------------------------------------------
SETTINGS_PATH = ("Configuration", "API", "Settings")
PRECAUTIONS_PATH = ("Configuration", "API", "Precautions")
LOCK_AND_EXIT_PATH = ("Configuration", "Lock and Exit")


def login_window(title="IB Gateway", with_ssl=False, ssl_checked=False):
    controls = [
        FakeControl(ControlKind.TOGGLE_BUTTON, "FIX CTCI"),
        FakeControl(ControlKind.TOGGLE_BUTTON, "IB API"),
        FakeControl(ControlKind.TOGGLE_BUTTON, "Live Trading"),
        FakeControl(ControlKind.TOGGLE_BUTTON, "Paper Trading"),
        FakeControl(ControlKind.TEXT_FIELD, name="username"),
        FakeControl(ControlKind.TEXT_FIELD, name="password"),
        FakeControl(ControlKind.BUTTON, "Log In"),
        FakeControl(ControlKind.BUTTON, "Paper Log In"),
    ]
    if with_ssl:
        controls.insert(6, FakeControl(ControlKind.CHECK_BOX, "Use SSL", checked=ssl_checked))
    return FakeWindow(title, "frame0", controls)


def main_window():
    return FakeWindow("IB Gateway", "frame0", menus={"Configure": ["Settings"]})


def configuration_window(read_only=True, pm_selected=True, with_allocation=True):
    settings_panel = [
        FakeControl(ControlKind.CHECK_BOX, "Read-Only API", checked=read_only),
        FakeControl(ControlKind.TEXT_FIELD, name="Socket port", value="4001"),
        FakeControl(ControlKind.CHECK_BOX, "Create API message log file"),
    ]
    if with_allocation:
        settings_panel.append(FakeControl(ControlKind.CHECK_BOX, "Use Account Groups with Allocation Methods",
                                          checked=True))
    return FakeWindow(
        "IB Gateway Configuration",
        controls=[
            FakeControl(ControlKind.TREE, name="tree"),
            FakeControl(ControlKind.BUTTON, "OK"),
            FakeControl(ControlKind.BUTTON, "Cancel"),
        ],
        panels={
            SETTINGS_PATH: settings_panel,
            PRECAUTIONS_PATH: [
                FakeControl(ControlKind.CHECK_BOX, "Bypass Order Precautions for API Orders"),
            ],
            LOCK_AND_EXIT_PATH: [
                FakeControl(ControlKind.RADIO_BUTTON, "Auto logoff"),
                FakeControl(ControlKind.RADIO_BUTTON, "Auto restart"),
                FakeControl(ControlKind.TEXT_FIELD, name="Restart time", value="11:59"),
                FakeControl(ControlKind.RADIO_BUTTON, "AM", checked=not pm_selected),
                FakeControl(ControlKind.RADIO_BUTTON, "PM", checked=pm_selected),
            ],
        },
    )


def dialog(title="", text=None, labels=(), buttons=("OK",), option_pane=None, system_name="dialog1",
           list_items=None):
    controls = []
    if text is not None:
        controls.append(FakeControl(ControlKind.TEXT_PANE, text))
    if option_pane is not None:
        controls.append(FakeControl(ControlKind.OPTION_PANE, option_pane))
    controls.extend(FakeControl(ControlKind.LABEL, label) for label in labels)
    if list_items is not None:
        controls.append(FakeControl(ControlKind.LIST, name="methods", items=list_items))
    controls.extend(FakeControl(ControlKind.BUTTON, button) for button in buttons)
    return FakeWindow(title, system_name, controls)
