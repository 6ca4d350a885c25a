"""Linux (X11) Backend, we use python-xlib + EWMH for the window layer and
vision for the control layer. Java windows expose no accessible component tree
to X11, so a window's controls are whatever PaddleOCR reads off a screenshot
(captions) plus the input boxes OpenCV finds; clicks and typing go through
pyautogui at absolute screen coordinates.

A window's screenshot is taken once per handled event and reused by every
handler that looks at it; our own clicks, the next event and the window
closing all discard it."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field

import mss
import numpy as np
from Xlib import display
from Xlib.error import XError
from ewmh import EWMH

from gatewaylogin.backends.base import ControlKind, IntrospectionBackend, WindowGoneError
from gatewaylogin.vision.visual_check import VisualVerifier

MENU_BAR_HEIGHT = 60
MENU_OPEN_DELAY = 0.3
# Swing dialogs lay their buttons out in a row along the bottom edge
BUTTON_ROW_HEIGHT = 45
# A freshly mapped window can still be blank
PAINT_RETRIES = 3
PAINT_DELAY = 0.5


@dataclass(eq=False)
class X11Window:
    xid: int
    xwin: object


@dataclass(eq=False)
class ScreenControl:
    window: X11Window
    kind: ControlKind
    text: str
    box: tuple                       # (left, top, right, bottom), window-relative
    frame: np.ndarray = field(repr=False, default=None)

    @property
    def center(self):
        left, top, right, bottom = self.box
        return (left + right) // 2, (top + bottom) // 2


class LinuxBackend(IntrospectionBackend):
    def __init__(self, wm_class="ibgateway", ewmh=None, sct=None, ocr=None, verifier=None, pointer=None,
                 paint_retries=PAINT_RETRIES, paint_delay=PAINT_DELAY):
        super().__init__()
        self.wm_class = wm_class.lower()
        if ewmh is None:
            # Initialize X11 connection and EWMH helper
            d = display.Display()
            ewmh = EWMH(_display=d, root=d.screen().root)
        self.ewmh = ewmh
        self.root = ewmh.root
        self.sct = sct if sct is not None else mss.mss()
        self.verifier = verifier or VisualVerifier()
        self.paint_retries = paint_retries
        self.paint_delay = paint_delay
        self._ocr = ocr
        self._pointer = pointer
        self._frames = {}

    @property
    def ocr(self):
        """Lazy loader for PaddleOCR to save RAM during startup."""
        if self._ocr is None:
            from gatewaylogin.vision.ocr_engine import OCRWrapper
            self._ocr = OCRWrapper()
        return self._ocr

    @property
    def pointer(self):
        """Lazy loader for pyautogui, which connects to the X display on import."""
        if self._pointer is None:
            import pyautogui
            # PyAutoGUI configuration for Linux X11
            pyautogui.PAUSE = 0.1
            self._pointer = pyautogui
        return self._pointer

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------
    def enumerate_open_windows(self):
        windows = []
        for xwin in self.ewmh.getClientList():
            try:
                wm_class = xwin.get_wm_class() or ()
            except XError:
                continue
            if any(self.wm_class in name.lower() for name in wm_class):
                windows.append(X11Window(xwin.id, xwin))
        return windows

    def window_id(self, window):
        return window.xid

    def _read_title(self, window):
        with _gone_guard():
            name = self.ewmh.getWMName(window.xwin)
        if isinstance(name, bytes):
            name = name.decode('utf-8', 'ignore')
        return name or ""

    def _read_system_name(self, window):
        # Java sets the instance name to the AWT peer: sun-awt-X11-XFramePeer / XDialogPeer
        with _gone_guard():
            wm_class = window.xwin.get_wm_class()
        return wm_class[0] if wm_class else ""

    def is_window_active(self, window):
        with _gone_guard():
            active = self.ewmh.getActiveWindow()
        return active is not None and active.id == window.xid

    def request_close(self, window):
        with _gone_guard():
            self.ewmh.setCloseWindow(window.xwin)
            self.ewmh.display.flush()

    def refresh(self, window):
        self._frames.pop(window.xid, None)

    def forget(self, window):
        # X recycles ids, a later window must never see this one's screenshot
        self._frames.pop(window.xid, None)

    def _rect(self, window):
        with _gone_guard():
            geom = window.xwin.get_geometry()
            # translate (0,0) of the window to root coordinates, past the WM decorations
            t_coords = window.xwin.translate_coords(self.root, 0, 0)
        return {"x": -t_coords.x, "y": -t_coords.y, "w": geom.width, "h": geom.height}

    # ------------------------------------------------------------------
    # Screenshots
    # ------------------------------------------------------------------
    def _snapshot(self, window):
        """Screenshot, OCR captions and input boxes of the window, cached until refreshed."""
        cached = self._frames.get(window.xid)
        if cached is not None:
            return cached

        rect = self._rect(window)
        monitor = {"top": rect['y'], "left": rect['x'], "width": rect['w'], "height": rect['h']}
        for attempt in range(self.paint_retries + 1):
            frame = np.ascontiguousarray(np.array(self.sct.grab(monitor))[:, :, :3])
            hits = self.ocr.analyze_ui(frame)
            if hits:
                break
            if attempt < self.paint_retries:
                time.sleep(self.paint_delay)

        boxes = self.verifier.find_input_boxes(frame)
        snapshot = (frame, rect, hits, boxes)
        # a blank capture is retried on the next lookup instead of being kept
        if hits:
            self._frames[window.xid] = snapshot
        return snapshot

    def _click(self, control):
        _, rect, _, _ = self._snapshot(control.window)
        x, y = control.center
        self.pointer.click(rect['x'] + x, rect['y'] + y)
        self.refresh(control.window)

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------
    def iter_controls(self, root, kind):
        frame, rect, hits, boxes = self._snapshot(root)
        captions = [hit for hit in hits if not any(_inside(hit.box, box) for box in boxes)]
        if kind is ControlKind.TEXT_FIELD:
            for box in boxes:
                text = " ".join(hit.text for hit in hits if _inside(hit.box, box))
                yield ScreenControl(root, kind, text, box, frame)
        elif kind in (ControlKind.TREE, ControlKind.LIST):
            # the whole window stands in for the tree / list; selection is by caption
            yield ScreenControl(root, kind, "", (0, 0, rect['w'], rect['h']), frame)
        elif kind is ControlKind.TEXT_PANE:
            # the message body: everything above the button row
            body_bottom = rect['h'] - BUTTON_ROW_HEIGHT
            body = [hit.text for hit in captions if hit.box[3] <= body_bottom]
            if body:
                yield ScreenControl(root, kind, " ".join(body), (0, 0, rect['w'], body_bottom), frame)
        elif kind is ControlKind.TEXT_AREA:
            return
        else:
            for hit in captions:
                yield ScreenControl(root, kind, hit.text, hit.box, frame)

    def iter_all_controls(self, root):
        controls = list(self.iter_controls(root, ControlKind.LABEL))
        controls.extend(self.iter_controls(root, ControlKind.TEXT_FIELD))
        return controls

    def window_text(self, window):
        # every caption is already a label here, adding the pane would repeat the body
        return " ".join(self.label_lines(window))

    def control_text(self, control):
        return control.text

    def read_text(self, control):
        return control.text

    def set_text(self, control, value):
        self._click(control)
        self.pointer.hotkey('ctrl', 'a')
        self.pointer.write(value, interval=0.05)

    def is_checked(self, control):
        if control.kind is ControlKind.TOGGLE_BUTTON:
            # pressed toggle buttons cannot be told apart reliably; clicking one
            # that is already selected leaves it selected
            return False
        return self.verifier.is_marked(control.frame, control.box)

    def set_checked(self, control, checked):
        if self.is_checked(control) != checked:
            self._click(control)

    def is_enabled(self, control):
        return not self.verifier.is_dimmed(control.frame, control.box)

    def activate(self, control):
        self._click(control)

    def select_tree_path(self, tree, path):
        return self._click_caption(tree.window, path[-1])

    def select_list_entry(self, control, text):
        return self._click_caption(control.window, text)

    def _click_caption(self, window, text):
        control = self.find_control(window, ControlKind.LABEL, text)
        if control is None:
            return False
        self._click(control)
        return True

    def find_menu_item(self, window, menu, item):
        menu_control = self.find_control(window, ControlKind.LABEL, menu)
        if menu_control is None or menu_control.box[1] > MENU_BAR_HEIGHT:
            return None
        self._click(menu_control)
        time.sleep(MENU_OPEN_DELAY)
        entry = self.find_control(window, ControlKind.LABEL, item)
        if entry is None:
            self.pointer.press('escape')
            self.refresh(window)
        return entry

    def describe(self, control):
        return f"[{control.kind.value}] - Text: [{control.text}] - Box: {control.box}"


def _inside(inner, outer):
    return outer[0] <= inner[0] and outer[1] <= inner[1] and inner[2] <= outer[2] and inner[3] <= outer[3]


@contextmanager
def _gone_guard():
    """Maps X errors on a destroyed window onto WindowGoneError."""
    try:
        yield
    except XError as e:
        raise WindowGoneError(str(e)) from e
