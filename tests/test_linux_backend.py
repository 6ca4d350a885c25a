from types import SimpleNamespace

import numpy as np
import pytest

pytest.importorskip("cv2")
pytest.importorskip("Xlib")
pytest.importorskip("ewmh")
pytest.importorskip("mss")

from gatewaylogin.backends.base import ControlKind  # noqa: E402
from gatewaylogin.backends.linux import LinuxBackend, X11Window  # noqa: E402
from gatewaylogin.events import EventKind  # noqa: E402
from gatewaylogin.pump import WindowEventPump  # noqa: E402
from gatewaylogin.vision.ocr_engine import TextHit  # noqa: E402

DIALOG_CLASS = ("sun-awt-X11-XDialogPeer", "ibgateway-GWClient")


def hit(text, box):
    left, top, right, bottom = box
    return TextHit(text, ((left + right) // 2, (top + bottom) // 2), box, 0.99)


class ScriptedOCR:
    """Answers each capture with the next screen; the last one stays on screen."""

    def __init__(self, *screens):
        self.screens = list(screens)
        self.calls = 0

    def analyze_ui(self, frame):
        self.calls += 1
        if len(self.screens) > 1:
            return self.screens.pop(0)
        return self.screens[0]


class FakeGrabber:
    def __init__(self):
        self.monitors = []

    def grab(self, monitor):
        self.monitors.append(monitor)
        return np.zeros((monitor["height"], monitor["width"], 4), dtype=np.uint8)


class StubVerifier:
    def __init__(self, boxes=(), marked=()):
        self.boxes = list(boxes)
        self.marked = set(marked)

    def find_input_boxes(self, frame):
        return list(self.boxes)

    def is_marked(self, frame, box):
        return box in self.marked

    def is_dimmed(self, frame, box):
        return False


class FakePointer:
    def __init__(self):
        self.calls = []

    def click(self, x, y):
        self.calls.append(("click", x, y))

    def hotkey(self, *keys):
        self.calls.append(("hotkey",) + keys)

    def write(self, text, interval=0):
        self.calls.append(("write", text))

    def press(self, key):
        self.calls.append(("press", key))


class FakeXWin:
    def __init__(self, xid, name="", wm_class=DIALOG_CLASS, origin=(100, 50), size=(300, 200)):
        self.id = xid
        self.name = name
        self.wm_class = wm_class
        self.origin = origin
        self.size = size

    def get_wm_class(self):
        return self.wm_class

    def get_geometry(self):
        return SimpleNamespace(width=self.size[0], height=self.size[1])

    def translate_coords(self, src, x, y):
        # the root's origin, seen from inside the window
        return SimpleNamespace(x=x - self.origin[0], y=y - self.origin[1])


class FakeEwmh:
    def __init__(self, clients=()):
        self.root = object()
        self.display = SimpleNamespace(flush=lambda: None)
        self.clients = list(clients)
        self.active = None
        self.closed = []

    def getClientList(self):
        return list(self.clients)

    def getWMName(self, xwin):
        return xwin.name.encode()

    def getActiveWindow(self):
        return self.active

    def setCloseWindow(self, xwin):
        self.closed.append(xwin.id)


def make_backend(ocr, boxes=(), marked=(), clients=(), paint_retries=0):
    return LinuxBackend(
        ewmh=FakeEwmh(clients),
        sct=FakeGrabber(),
        ocr=ocr,
        verifier=StubVerifier(boxes, marked),
        pointer=FakePointer(),
        paint_retries=paint_retries,
        paint_delay=0,
    )


def x11(xid=0x3a00007, **kwargs):
    xwin = FakeXWin(xid, **kwargs)
    return X11Window(xwin.id, xwin)


RESTART_BODY = [
    hit("You have elected to have your trading platform", (20, 20, 280, 40)),
    hit("restart automatically", (20, 45, 160, 65)),
]
OK_BUTTON = hit("OK", (140, 170, 180, 190))


def test_only_gateway_windows_are_listed():
    gateway = FakeXWin(1, "IB Gateway")
    other = FakeXWin(2, "Terminal", wm_class=("xterm", "XTerm"))
    backend = make_backend(ScriptedOCR([]), clients=[gateway, other])
    windows = backend.enumerate_open_windows()
    assert [w.xid for w in windows] == [1]
    assert backend.window_title(windows[0]) == "IB Gateway"
    assert backend.is_dialog(windows[0])


def test_capture_region_is_the_window_position_on_the_root():
    backend = make_backend(ScriptedOCR([OK_BUTTON]))
    backend.find_control(x11(origin=(100, 50)), ControlKind.BUTTON, "OK")
    assert backend.sct.monitors == [{"top": 50, "left": 100, "width": 300, "height": 200}]


def test_window_text_of_a_dialog_that_paints_late():
    phrase = hit("Too many failed login attempts", (20, 20, 260, 40))
    ocr = ScriptedOCR([], [phrase, OK_BUTTON])
    backend = make_backend(ocr)
    window = x11()

    # mapped but still blank: nothing read, nothing kept
    assert backend.window_text(window).strip() == ""
    assert "Too many failed login attempts" in backend.window_text(window)


def test_blank_capture_is_retried_while_the_window_paints():
    ocr = ScriptedOCR([], [], RESTART_BODY + [OK_BUTTON])
    backend = make_backend(ocr, paint_retries=3)
    assert "restart automatically" in backend.window_text(x11())
    assert ocr.calls == 3


def test_screenshot_is_reused_until_refreshed():
    ocr = ScriptedOCR([hit("Old text", (20, 20, 120, 40))], [hit("New text", (20, 20, 120, 40))])
    backend = make_backend(ocr)
    window = x11()

    assert backend.window_text(window) == "Old text"
    assert backend.label_lines(window) == ["Old text"]
    assert ocr.calls == 1

    backend.refresh(window)
    assert backend.window_text(window) == "New text"


def test_closed_windows_release_their_screenshots():
    clients = [FakeXWin(0x100 + i, f"Notice {i}") for i in range(100)]
    backend = make_backend(ScriptedOCR([OK_BUTTON]))
    ewmh = backend.ewmh

    def read_on_open(event):
        if event.kind is EventKind.OPENED:
            backend.window_text(event.window)

    pump = WindowEventPump(backend, read_on_open, audit=None)
    ewmh.clients = clients
    pump.poll()
    assert len(backend._frames) == 100

    ewmh.clients = []
    pump.poll()
    assert backend._frames == {}


def test_message_body_becomes_the_text_pane():
    backend = make_backend(ScriptedOCR(RESTART_BODY + [OK_BUTTON]))
    text = backend.text_pane_text(x11())
    assert text == "You have elected to have your trading platform restart automatically"
    assert backend.find_control(x11(), ControlKind.TEXT_AREA) is None


def test_window_without_body_text_has_no_text_pane():
    backend = make_backend(ScriptedOCR([OK_BUTTON]))
    assert backend.find_control(x11(), ControlKind.TEXT_PANE) is None


def test_text_inside_an_input_box_belongs_to_the_field_not_the_captions():
    field_box = (100, 20, 260, 44)
    backend = make_backend(
        ScriptedOCR([hit("Username", (10, 24, 80, 40)), hit("trader", (105, 24, 150, 40))]),
        boxes=[field_box],
    )
    window = x11()
    field = backend.find_control(window, ControlKind.TEXT_FIELD)
    assert field.box == field_box
    assert backend.read_text(field) == "trader"
    assert backend.label_lines(window) == ["Username"]


def test_typing_clicks_the_field_then_replaces_its_text():
    backend = make_backend(ScriptedOCR([hit("Username", (10, 24, 80, 40))]), boxes=[(100, 20, 260, 44)])
    field = backend.find_control(x11(origin=(100, 50)), ControlKind.TEXT_FIELD)
    backend.set_text(field, "trader")
    assert backend.pointer.calls == [("click", 280, 82), ("hotkey", "ctrl", "a"), ("write", "trader")]


def test_clicks_land_on_screen_coordinates_and_discard_the_screenshot():
    ocr = ScriptedOCR([OK_BUTTON])
    backend = make_backend(ocr)
    window = x11(origin=(100, 50))
    button = backend.find_control(window, ControlKind.BUTTON, "OK")

    backend.activate(button)

    assert backend.pointer.calls == [("click", 260, 230)]
    assert window.xid not in backend._frames


def test_check_state_comes_from_the_box_left_of_the_caption():
    caption = (40, 20, 160, 36)
    backend = make_backend(ScriptedOCR([hit("Read-Only API", caption)]), marked=[caption])
    window = x11()
    check_box = backend.find_control(window, ControlKind.CHECK_BOX, "Read-Only API")
    toggle = backend.find_control(window, ControlKind.TOGGLE_BUTTON, "Read-Only API")
    assert backend.is_checked(check_box)
    assert not backend.is_checked(toggle)

    backend.set_checked(check_box, True)
    assert backend.pointer.calls == []
    backend.set_checked(check_box, False)
    assert backend.pointer.calls == [("click", 200, 78)]


def test_menu_item_is_read_after_opening_the_menu():
    configure = hit("Configure", (60, 5, 130, 20))
    settings_item = hit("Settings", (60, 30, 130, 45))
    backend = make_backend(ScriptedOCR([configure], [configure, settings_item]))
    entry = backend.find_menu_item(x11(origin=(0, 0)), "Configure", "Settings")
    assert entry.text == "Settings"
    assert backend.pointer.calls == [("click", 95, 12)]


def test_missing_menu_item_closes_the_menu_again():
    configure = hit("Configure", (60, 5, 130, 20))
    backend = make_backend(ScriptedOCR([configure]))
    assert backend.find_menu_item(x11(origin=(0, 0)), "Configure", "Settings") is None
    assert backend.pointer.calls[-1] == ("press", "escape")


def test_caption_below_the_menu_bar_is_not_a_menu():
    backend = make_backend(ScriptedOCR([hit("Configure", (60, 120, 130, 135))]))
    assert backend.find_menu_item(x11(), "Configure", "Settings") is None
    assert backend.pointer.calls == []


def test_close_request_goes_through_ewmh():
    backend = make_backend(ScriptedOCR([]))
    backend.request_close(x11(xid=7))
    assert backend.ewmh.closed == [7]


# ----------------------------------------------------------------------
# Wired into the dispatcher
# ----------------------------------------------------------------------
@pytest.fixture
def backend():
    return make_backend(ScriptedOCR(RESTART_BODY + [OK_BUTTON]))


def test_auto_restart_confirmation_is_recognized_and_dismissed(login, backend, read_log):
    window = x11(name="Information", origin=(100, 50))

    handler = login.dispatcher.dispatch(window, EventKind.OPENED)

    assert handler is not None and handler.name == "EnableAutoRestartConfirmation"
    assert backend.pointer.calls == [("click", 260, 230)]
    assert "You have elected to have your trading platform restart automatically" in read_log()
