from gatewaylogin.events import HANDLED_EVENTS


class Dispatcher:
    """
    Entry point for every window lifecycle event.

    Logs the events we care about and offers them to the handler chain in order;
    the first handler that claims the event ends the search, and unclaimed events
    go to the fallback. Nothing raised by a handler ever escapes on_event().
    """

    def __init__(self, login, handlers, fallback):
        self.login = login
        self.handlers = handlers
        self.fallback = fallback

    def on_event(self, event):
        if event.kind not in HANDLED_EVENTS:
            return
        try:
            self.dispatch(event.window, event.kind)
        except Exception as e:
            self.login.audit.log_error(e)

    def dispatch(self, window, kind):
        """Returns the handler that claimed the event, or None."""
        backend = self.login.backend
        # a window may have repainted since its last event
        backend.refresh(window)
        self.login.audit.log_message(
            f"Window event: [{kind.value}] - Window title: [{backend.window_title(window)}] - "
            f"Window name: [{backend.window_system_name(window)}]"
        )
        for handler in self.handlers:
            if handler(window, kind):
                return handler
        if self.fallback(window, kind):
            return self.fallback
        return None
