from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventKind(Enum):
    OPENED = "WINDOW_OPENED"
    ACTIVATED = "WINDOW_ACTIVATED"
    DEACTIVATED = "WINDOW_DEACTIVATED"
    CLOSING = "WINDOW_CLOSING"
    CLOSED = "WINDOW_CLOSED"
    # raised by hosts but never acted upon
    ICONIFIED = "WINDOW_ICONIFIED"
    DEICONIFIED = "WINDOW_DEICONIFIED"
    GAINED_FOCUS = "WINDOW_GAINED_FOCUS"
    LOST_FOCUS = "WINDOW_LOST_FOCUS"
    STATE_CHANGED = "WINDOW_STATE_CHANGED"


HANDLED_EVENTS = frozenset({
    EventKind.OPENED,
    EventKind.ACTIVATED,
    EventKind.DEACTIVATED,
    EventKind.CLOSING,
    EventKind.CLOSED,
})


@dataclass(frozen=True)
class LifecycleEvent:
    window: Any
    kind: EventKind
