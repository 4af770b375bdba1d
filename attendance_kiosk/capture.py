"""
Capture control module.

State machine behind the kiosk camera:

    disabled <-> idle --(auto interval)--> countdown --> processing --> result --> idle
                 idle --(manual request)-----------------> processing

Manual captures fire immediately. Auto captures fire every
capture_interval_seconds after a short countdown. A result stays on screen
for result_hold_seconds before the next capture can start.
"""

import math
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .config import Config
from .logging_config import get_logger

logger = get_logger(__name__)


class CaptureState(str, Enum):
    DISABLED = 'disabled'
    IDLE = 'idle'
    COUNTDOWN = 'countdown'
    PROCESSING = 'processing'
    RESULT = 'result'


class CaptureMode(str, Enum):
    MANUAL = 'manual'
    AUTO = 'auto'


class CaptureTrigger(str, Enum):
    MANUAL = 'manual'
    AUTO = 'auto'


class CaptureController:
    """
    Thread-safe capture state machine.

    The capture loop calls tick() once per frame and takes a photo whenever
    it returns a trigger, then reports back through finish() or fail().
    """

    def __init__(self, config: Config, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()

        self.interval = config.capture_interval_seconds
        self.countdown_seconds = config.countdown_seconds
        self.hold_seconds = config.result_hold_seconds

        self.mode = CaptureMode(config.capture_mode)
        self.state = CaptureState.IDLE
        self._manual_requested = False
        self._cycle_start = clock()
        self._countdown_end = 0.0
        self._hold_until = 0.0
        self._active_trigger: Optional[CaptureTrigger] = None

        self.last_result: Optional[Dict[str, Any]] = None
        self.last_result_at: Optional[float] = None

    def enable(self) -> None:
        with self._lock:
            if self.state == CaptureState.DISABLED:
                self.state = CaptureState.IDLE
                self._cycle_start = self._clock()
                logger.info('Camera enabled')

    def disable(self) -> None:
        with self._lock:
            self.state = CaptureState.DISABLED
            self._manual_requested = False
            self._active_trigger = None
            logger.info('Camera disabled')

    @property
    def enabled(self) -> bool:
        return self.state != CaptureState.DISABLED

    def set_mode(self, mode: str) -> None:
        """
        Switch between manual and auto capture.

        Raises:
            ValueError: If mode is unknown
        """
        new_mode = CaptureMode(mode)
        with self._lock:
            self.mode = new_mode
            self._cycle_start = self._clock()
            if self.state == CaptureState.COUNTDOWN:
                self.state = CaptureState.IDLE
        logger.info(f'Capture mode set to {new_mode.value}')

    def request_capture(self) -> bool:
        """
        Ask for a manual capture.

        Returns:
            True if accepted (camera idle), False otherwise
        """
        with self._lock:
            if self.state != CaptureState.IDLE:
                return False
            self._manual_requested = True
            return True

    def tick(self) -> Optional[CaptureTrigger]:
        """
        Advance the state machine.

        Returns:
            The trigger to act on now, or None
        """
        with self._lock:
            now = self._clock()

            if self.state == CaptureState.RESULT and now >= self._hold_until:
                self.state = CaptureState.IDLE
                self._cycle_start = now

            if self.state == CaptureState.IDLE:
                if self._manual_requested:
                    return self._fire(CaptureTrigger.MANUAL)

                if self.mode == CaptureMode.AUTO and now - self._cycle_start >= self.interval:
                    self.state = CaptureState.COUNTDOWN
                    self._countdown_end = now + self.countdown_seconds

            if self.state == CaptureState.COUNTDOWN and now >= self._countdown_end:
                return self._fire(CaptureTrigger.AUTO)

            return None

    def _fire(self, trigger: CaptureTrigger) -> CaptureTrigger:
        self.state = CaptureState.PROCESSING
        self._manual_requested = False
        self._active_trigger = trigger
        logger.debug(f'Capture triggered ({trigger.value})')
        return trigger

    def finish(self, result: Dict[str, Any]) -> None:
        """Store the outcome of the capture in progress."""
        self._complete(result)

    def fail(self, error: str) -> None:
        """Record a failed capture."""
        self._complete({'success': False, 'error': error})

    def _complete(self, result: Dict[str, Any]) -> None:
        with self._lock:
            now = self._clock()
            trigger = self._active_trigger
            self._active_trigger = None
            self.last_result = {**result, 'trigger': trigger.value if trigger else None}
            self.last_result_at = now

            if self.state == CaptureState.PROCESSING:
                self.state = CaptureState.RESULT
                self._hold_until = now + self.hold_seconds

    def countdown_remaining(self) -> Optional[int]:
        """Whole seconds left in the countdown, or None outside it."""
        with self._lock:
            if self.state != CaptureState.COUNTDOWN:
                return None
            return max(1, math.ceil(self._countdown_end - self._clock()))

    def snapshot(self) -> Dict[str, Any]:
        countdown = self.countdown_remaining()
        with self._lock:
            return {
                'state': self.state.value,
                'mode': self.mode.value,
                'countdown': countdown,
                'captureInterval': self.interval,
                'lastResult': self.last_result,
            }
