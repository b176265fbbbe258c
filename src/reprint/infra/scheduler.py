import threading
from typing import Callable


class TimerScheduler:
    """One-shot delayed calls backed by daemon threading.Timer objects."""

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(0.0, delay_s), fn)
        timer.daemon = True
        timer.start()
        return timer
