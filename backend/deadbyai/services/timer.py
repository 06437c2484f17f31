import logging
import threading
import time
from typing import Callable, Dict, Optional


class Countdown:
    """A single countdown delivering ticks and exactly one expiry.

    ``step()`` advances the countdown by one tick interval; ``run()`` calls it
    in a sleep loop until the countdown finishes or is cancelled.
    """

    def __init__(self, key: str, duration: int, on_tick: Callable[[int], None],
                 on_expire: Callable[[], None], on_error: Optional[Callable[[Exception], None]] = None,
                 interval: int = 1, logger: Optional[logging.Logger] = None):
        self.key = key
        self.duration = int(duration)
        self.remaining = int(duration)
        self.interval = max(1, int(interval))
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._on_error = on_error
        self._cancelled = threading.Event()
        self._expired = False
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def finished(self) -> bool:
        return self._expired or self.cancelled

    def cancel(self) -> None:
        self._cancelled.set()

    def step(self) -> bool:
        """Advance one interval. Returns False once nothing more will be delivered."""
        with self._lock:
            if self.finished:
                return False
            self.remaining = max(0, self.remaining - self.interval)
            remaining = self.remaining
            if remaining == 0:
                self._expired = True
        try:
            if remaining > 0:
                self._on_tick(remaining)
                return not self.cancelled
            self.logger.info(f"[timer-fire] key={self.key} duration={self.duration}s")
            self._on_expire()
        except Exception as exc:
            self.logger.exception(f"[timer-error] key={self.key} remaining={remaining}s")
            self.cancel()
            if self._on_error:
                self._on_error(exc)
        return False

    def run(self, sleep: Callable[[float], None] = time.sleep) -> None:
        while not self.finished:
            sleep(self.interval)
            if self.cancelled:
                self.logger.info(f"[timer-abort] key={self.key} remaining={self.remaining}s")
                return
            if not self.step():
                return


class TimerService:
    """Tracks at most one countdown per key (a room code).

    Countdowns run on Flask-SocketIO background tasks when ``autostart`` is
    set; otherwise they are created idle and advanced with ``Countdown.step``.
    """

    def __init__(self, spawn: Optional[Callable] = None, sleep: Callable[[float], None] = time.sleep,
                 interval: int = 1, autostart: bool = True, logger: Optional[logging.Logger] = None):
        self._spawn = spawn
        self._sleep = sleep
        self.interval = interval
        self.autostart = autostart and spawn is not None
        self._timers: Dict[str, Countdown] = {}
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    def start(self, key: str, duration: int, on_tick: Callable[[int], None], on_expire: Callable[[], None],
              on_error: Optional[Callable[[Exception], None]] = None) -> Countdown:
        countdown = Countdown(key, duration, on_tick, on_expire, on_error=on_error,
                              interval=self.interval, logger=self.logger)
        with self._lock:
            previous = self._timers.get(key)
            if previous is not None:
                previous.cancel()
            self._timers[key] = countdown
        self.logger.info(f"[timer-set] key={key} duration={duration}s")
        if self.autostart:
            self._spawn(countdown.run, self._sleep)
        return countdown

    def cancel(self, key: str) -> None:
        with self._lock:
            countdown = self._timers.pop(key, None)
        if countdown is not None:
            countdown.cancel()

    def get(self, key: str) -> Optional[Countdown]:
        with self._lock:
            return self._timers.get(key)

    def is_active(self, key: str) -> bool:
        countdown = self.get(key)
        return countdown is not None and not countdown.finished

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for countdown in timers:
            countdown.cancel()
