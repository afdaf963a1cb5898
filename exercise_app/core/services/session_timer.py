"""Cancellable countdown that forces submission when an exercise runs out of time."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import logging
from threading import Event, Lock, Thread

from exercise_app.constants.exercise_constants import TICK_INTERVAL_SECONDS
from exercise_app.core.errors import StateError, ValidationError

logger = logging.getLogger(__name__)


class TimerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SessionTimer:
    """Counts down one second per tick and emits a single force-submit at zero.

    The timer can drive itself from a daemon thread (``start(background=True)``)
    or be advanced by the caller through :meth:`tick`. Callbacks run outside the
    internal lock, so they may call back into the timer (e.g. ``cancel``).
    """

    def __init__(
        self,
        total_seconds: int,
        on_tick: Callable[[int], None] | None = None,
        on_force_submit: Callable[[], None] | None = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        name: str = "SessionTimer",
    ) -> None:
        if total_seconds <= 0:
            raise ValidationError("Timer duration must be a positive number of seconds.")
        self._lock = Lock()
        self._state = TimerState.IDLE
        self._total_seconds = total_seconds
        self._remaining_seconds = total_seconds
        self._on_tick = on_tick
        self._on_force_submit = on_force_submit
        self._tick_interval = tick_interval
        self._name = name
        self._stopped = Event()
        self._thread: Thread | None = None

    @property
    def state(self) -> TimerState:
        with self._lock:
            return self._state

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            return self._remaining_seconds

    @property
    def total_seconds(self) -> int:
        return self._total_seconds

    def start(self, background: bool = True) -> bool:
        """Move from IDLE to RUNNING. Returns False if the timer already left IDLE."""
        with self._lock:
            if self._state is not TimerState.IDLE:
                return False
            self._state = TimerState.RUNNING

        logger.debug("%s started with %ss", self._name, self._total_seconds)
        if background:
            self._thread = Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        return True

    def tick(self) -> int:
        """Advance the countdown by one second and return the remaining seconds."""
        remaining = self._advance()
        if remaining is None:
            raise StateError(f"Timer tick received while {self.state.value}.")
        return remaining

    def cancel(self) -> bool:
        """Stop the timer for good. Returns False if it had already expired or been cancelled."""
        with self._lock:
            if self._state in (TimerState.EXPIRED, TimerState.CANCELLED):
                return False
            self._state = TimerState.CANCELLED
        self._stopped.set()
        logger.debug("%s cancelled with %ss remaining", self._name, self.remaining_seconds)
        return True

    def _advance(self) -> int | None:
        with self._lock:
            if self._state is not TimerState.RUNNING:
                return None
            self._remaining_seconds -= 1
            remaining = self._remaining_seconds
            expired = remaining <= 0
            if expired:
                self._remaining_seconds = 0
                remaining = 0
                self._state = TimerState.EXPIRED

        if self._on_tick is not None:
            self._on_tick(remaining)
        if expired:
            self._stopped.set()
            logger.info("%s expired, forcing submission", self._name)
            if self._on_force_submit is not None:
                self._on_force_submit()
        return remaining

    def _run(self) -> None:
        while not self._stopped.wait(self._tick_interval):
            try:
                if self._advance() is None:
                    return
            except Exception:  # pragma: no cover - nothing upstream can receive it
                logger.exception("%s callback failed", self._name)
                return
