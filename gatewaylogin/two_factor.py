"""Two-factor prompt bookkeeping.

Idle -> Prompted on every prompt; the prompt window closing resolves it:
Confirmed when it closed before the threshold, TimedOut otherwise. A timeout
either allows another login attempt or, once the attempts are used up, is
terminal."""

from datetime import timedelta
from enum import Enum

from gatewaylogin import settings as config


class TwoFactorOutcome(Enum):
    NOT_PROMPTED = "not prompted"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed out"
    EXHAUSTED = "exhausted"


class TwoFactorTracker:
    def __init__(self, state, clock,
                 timeout=config.TWO_FACTOR_TIMEOUT,
                 max_attempts=config.TWO_FACTOR_MAX_ATTEMPTS,
                 retry_delay=config.TWO_FACTOR_RETRY_DELAY):
        self.state = state
        self.clock = clock
        self.timeout = timedelta(seconds=timeout)
        self.max_attempts = max_attempts
        self.base_retry_delay = retry_delay

    @property
    def attempts(self):
        return self.state.two_factor_attempts

    @property
    def is_prompted(self):
        return self.state.two_factor_request_time is not None

    def prompted(self):
        """Records a new prompt. Returns the attempt number."""
        self.state.two_factor_request_time = self.clock()
        self.state.two_factor_attempts = min(self.state.two_factor_attempts + 1, self.max_attempts)
        return self.state.two_factor_attempts

    def closed(self):
        """Resolves the pending prompt when its window closes."""
        requested_at = self.state.two_factor_request_time
        if requested_at is None:
            return TwoFactorOutcome.NOT_PROMPTED
        self.state.two_factor_request_time = None

        if self.clock() - requested_at < self.timeout:
            self.state.two_factor_attempts = 0
            return TwoFactorOutcome.CONFIRMED
        if self.state.two_factor_attempts >= self.max_attempts:
            return TwoFactorOutcome.EXHAUSTED
        return TwoFactorOutcome.TIMED_OUT

    def retry_delay(self):
        """Seconds to wait before the next login: grows with every attempt."""
        return self.base_retry_delay * self.state.two_factor_attempts
