"""UI introspection capability consumed by the handlers.

A backend knows how to list the gateway's top-level windows, search a window's
component tree for a labelled control, and perform the primitive actions the
handlers need (read/set text, check, click, select). Window and control objects
are opaque to everything above this layer."""

import re
import weakref
from abc import ABC, abstractmethod
from enum import Enum

_MARKUP = re.compile(r"<.*?>")


class WindowGoneError(Exception):
    """The native window disappeared between lookup and action."""
    pass


class ControlKind(Enum):
    BUTTON = "button"
    TOGGLE_BUTTON = "toggle button"
    CHECK_BOX = "check box"
    RADIO_BUTTON = "radio button"
    TEXT_FIELD = "text field"
    LABEL = "label"
    TEXT_PANE = "text pane"
    TEXT_AREA = "text area"
    TREE = "tree"
    LIST = "list"
    OPTION_PANE = "option pane"


def contains(text):
    """Case-insensitive substring predicate for find_control()."""
    needle = text.lower()

    def predicate(value):
        return value is not None and needle in value.lower()

    predicate.description = f"*{text}*"
    return predicate


def strip_markup(text):
    """Replaces HTML tags with spaces and trims, the way the gateway renders dialog text."""
    if not text:
        return ""
    return _MARKUP.sub(" ", text).strip()


def _matcher(match):
    if match is None:
        return lambda value: True
    if callable(match):
        return match
    expected = match.lower()
    return lambda value: value is not None and value.lower() == expected


class IntrospectionBackend(ABC):
    def __init__(self):
        self._titles = weakref.WeakKeyDictionary()
        self._system_names = weakref.WeakKeyDictionary()

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------
    @abstractmethod
    def enumerate_open_windows(self):
        """All top-level windows currently owned by the gateway process."""

    @abstractmethod
    def window_id(self, window):
        """A stable, hashable identity for the native window."""

    @abstractmethod
    def _read_title(self, window):
        pass

    @abstractmethod
    def _read_system_name(self, window):
        pass

    @abstractmethod
    def is_window_active(self, window):
        pass

    @abstractmethod
    def request_close(self, window):
        """Posts a close request to the window without waiting for it."""

    def refresh(self, window):
        """Drops cached knowledge of the window's contents. Called before each event is handled."""

    def forget(self, window):
        """Releases per-window resources once the window has closed."""

    def window_title(self, window):
        """Title of the window; the last seen title once the window is gone."""
        return self._cached_read(window, self._titles, self._read_title)

    def window_system_name(self, window):
        return self._cached_read(window, self._system_names, self._read_system_name)

    def _cached_read(self, window, cache, reader):
        try:
            value = reader(window) or ""
        except WindowGoneError:
            try:
                return cache.get(window, "")
            except TypeError:
                return ""
        try:
            cache[window] = value
        except TypeError:
            pass  # handle type is not weak-referenceable
        return value

    def is_frame(self, window):
        return "frame" in self.window_system_name(window).lower()

    def is_dialog(self, window):
        return "dialog" in self.window_system_name(window).lower()

    def active_window(self, windows):
        for window in windows:
            try:
                if self.is_window_active(window):
                    return window
            except WindowGoneError:
                continue
        return None

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------
    @abstractmethod
    def iter_controls(self, root, kind):
        """Yields every control of `kind` under `root`, in component-tree order."""

    @abstractmethod
    def control_text(self, control):
        """The caption used to identify a control (button text, label text...)."""

    @abstractmethod
    def read_text(self, control):
        pass

    @abstractmethod
    def set_text(self, control, value):
        pass

    @abstractmethod
    def is_checked(self, control):
        pass

    @abstractmethod
    def set_checked(self, control, checked):
        pass

    @abstractmethod
    def is_enabled(self, control):
        pass

    @abstractmethod
    def activate(self, control):
        """Simulates a click on a button, toggle, radio button or menu item."""

    @abstractmethod
    def select_tree_path(self, tree, path):
        """Selects the node at `path` (labels from the root). Returns False if absent."""

    @abstractmethod
    def select_list_entry(self, control, text):
        """Selects the entry whose text equals `text`. Returns False if absent."""

    @abstractmethod
    def find_menu_item(self, window, menu, item):
        """The menu item `item` of the menu-bar menu `menu`, or None."""

    @abstractmethod
    def describe(self, control):
        """One-line description of a control for diagnostic dumps."""

    @abstractmethod
    def iter_all_controls(self, root):
        """Every control under `root`, for diagnostic dumps."""

    def find_control(self, root, kind, match=None, index=0):
        """
        Finds the index-th control of `kind` whose caption satisfies `match`.

        `match` is None (any), a string (case-insensitive equality) or a predicate
        such as contains("..."). Returns None when there is no such control.
        """
        matcher = _matcher(match)
        position = 0
        for control in self.iter_controls(root, kind):
            if not matcher(self.control_text(control)):
                continue
            if position == index:
                return control
            position += 1
        return None

    # ------------------------------------------------------------------
    # Text helpers shared by the handlers
    # ------------------------------------------------------------------
    def label_lines(self, window):
        lines = []
        for label in self.iter_controls(window, ControlKind.LABEL):
            text = strip_markup(self.read_text(label))
            if text:
                lines.append(text)
        return lines

    def text_pane_text(self, window):
        pane = self.find_control(window, ControlKind.TEXT_PANE)
        return strip_markup(self.read_text(pane)) if pane is not None else ""

    def window_text(self, window):
        """Text pane, text area and label text of the window, joined with spaces."""
        text = self.text_pane_text(window)
        area = self.find_control(window, ControlKind.TEXT_AREA)
        if area is not None:
            text += " " + strip_markup(self.read_text(area))
        text += " " + " ".join(self.label_lines(window))
        return text

    def component_dump(self, window):
        lines = [f"Window title: [{self.window_title(window)}] - Window name: [{self.window_system_name(window)}]"]
        for control in self.iter_all_controls(window):
            lines.append(f"- Component: {self.describe(control)}")
        return lines
