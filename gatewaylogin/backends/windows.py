"""Windows Backend, we use pywinauto's UIA backend. With the Java Access Bridge
enabled the gateway's Swing components show up in the UIA tree: top-level
windows are SunAwtFrame / SunAwtDialog, controls keep their Swing captions."""

from contextlib import contextmanager

from pywinauto import Application
from pywinauto.application import ProcessNotFoundError
from pywinauto.findwindows import ElementNotFoundError

from gatewaylogin.backends.base import ControlKind, IntrospectionBackend, WindowGoneError

# Swing component -> UIA control types
CONTROL_TYPES = {
    ControlKind.BUTTON: ("Button",),
    ControlKind.TOGGLE_BUTTON: ("Button", "CheckBox"),
    ControlKind.CHECK_BOX: ("CheckBox",),
    ControlKind.RADIO_BUTTON: ("RadioButton",),
    ControlKind.TEXT_FIELD: ("Edit",),
    ControlKind.LABEL: ("Text",),
    ControlKind.TEXT_PANE: ("Document",),
    ControlKind.TEXT_AREA: ("Edit",),
    ControlKind.TREE: ("Tree",),
    ControlKind.LIST: ("List",),
    ControlKind.OPTION_PANE: ("Pane",),
}


class WindowsBackend(IntrospectionBackend):
    def __init__(self, executable="ibgateway.exe"):
        super().__init__()
        self.executable = executable
        self._app = None

    def _application(self):
        if self._app is None or not self._app.is_process_running():
            # connect lazily: the gateway may still be starting
            self._app = Application(backend="uia").connect(path=self.executable, timeout=0)
        return self._app

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------
    def enumerate_open_windows(self):
        try:
            return self._application().windows()
        except (ProcessNotFoundError, ElementNotFoundError):
            self._app = None
            return []

    def window_id(self, window):
        return window.handle

    def _read_title(self, window):
        with _gone_guard():
            return window.window_text()

    def _read_system_name(self, window):
        with _gone_guard():
            return window.element_info.class_name

    def is_window_active(self, window):
        with _gone_guard():
            return window.is_active()

    def request_close(self, window):
        with _gone_guard():
            window.close()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------
    def iter_controls(self, root, kind):
        types = CONTROL_TYPES[kind]
        with _gone_guard():
            for control in root.descendants():
                control_type = control.element_info.control_type
                if control_type not in types:
                    continue
                # Swing text areas and text fields are both Edit; split them on multi-line support
                if kind is ControlKind.TEXT_AREA and not _is_multiline(control):
                    continue
                if kind is ControlKind.TEXT_FIELD and _is_multiline(control):
                    continue
                yield control

    def iter_all_controls(self, root):
        with _gone_guard():
            return list(root.descendants())

    def control_text(self, control):
        with _gone_guard():
            return control.window_text()

    def read_text(self, control):
        with _gone_guard():
            get_value = getattr(control, "get_value", None)
            return get_value() if get_value is not None else control.window_text()

    def set_text(self, control, value):
        with _gone_guard():
            control.set_edit_text(value)

    def is_checked(self, control):
        with _gone_guard():
            if control.element_info.control_type == "RadioButton":
                return control.is_selected()
            return control.get_toggle_state() == 1

    def set_checked(self, control, checked):
        with _gone_guard():
            if control.element_info.control_type == "RadioButton":
                if checked:
                    control.select()
                return
            if (control.get_toggle_state() == 1) != checked:
                control.toggle()

    def is_enabled(self, control):
        with _gone_guard():
            return control.is_enabled()

    def activate(self, control):
        with _gone_guard():
            if control.element_info.control_type == "MenuItem":
                control.select()
            else:
                control.invoke()

    def select_tree_path(self, tree, path):
        with _gone_guard():
            try:
                tree.get_item(list(path)).select()
            except (IndexError, ElementNotFoundError):
                return False
            return True

    def select_list_entry(self, control, text):
        with _gone_guard():
            for item in control.children():
                if item.window_text() == text:
                    item.select()
                    return True
            return False

    def find_menu_item(self, window, menu, item):
        with _gone_guard():
            for top in window.descendants(control_type="MenuItem"):
                if top.window_text() != menu:
                    continue
                entries = top.children(control_type="MenuItem")
                if not entries:
                    # Swing builds menu entries lazily on first expansion
                    top.expand()
                    entries = top.children(control_type="MenuItem")
                    top.collapse()
                for entry in entries:
                    if entry.window_text().lower() == item.lower():
                        return entry
            return None

    def describe(self, control):
        with _gone_guard():
            info = control.element_info
            text = control.window_text()
        return f"[{info.control_type}] class=[{info.class_name}] - Text: [{text}]"


def _is_multiline(control):
    try:
        return control.element_info.control_type == "Edit" and control.get_line_count() > 1
    except (AttributeError, NotImplementedError):
        return False


@contextmanager
def _gone_guard():
    """Maps pywinauto's 'element disappeared' failures onto WindowGoneError."""
    try:
        yield
    except ElementNotFoundError as e:
        raise WindowGoneError(str(e)) from e
