"""Test doubles and small helpers shared across test modules."""
import threading
import time
from datetime import datetime, timezone


class FakeTransport:
    """Records reports instead of emailing them."""

    def __init__(self, fail=False, raise_error=None, startup_ok=True, delay=0.0):
        self.fail = fail
        self.raise_error = raise_error
        self.startup_ok = startup_ok
        self.delay = delay
        self.reports = []
        self.startup_notifications = 0
        self._lock = threading.Lock()

    def send_report(self, report):
        with self._lock:
            self.reports.append(report)
        if self.delay:
            # Stands in for a slow SMTP exchange
            time.sleep(self.delay)
        if self.raise_error is not None:
            raise self.raise_error
        return not self.fail

    def send_startup_notification(self):
        self.startup_notifications += 1
        return self.startup_ok


def at(hour, minute=0, day=2):
    """An aware timestamp on 2024-05-<day>."""
    return datetime(2024, 5, day, hour, minute, tzinfo=timezone.utc)
