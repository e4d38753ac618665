# qrcheckin/scanner/state.py
"""
Scanner lifecycle.

    Idle ──start──▶ Scanning ──frame_decoded──▶ ResultDisplayed
                       ▲                              │
                       └──────timeout_elapsed─────────┘

    stop: Scanning | ResultDisplayed ──▶ Idle

A decoded frame pauses scanning while its result is shown; tick() resumes
scanning once the display deadline has passed.
"""

import enum
import logging
import time

from qrcheckin.exceptions import InvalidScannerTransition

logger = logging.getLogger(__name__)


class ScannerState(enum.Enum):
    IDLE             = 'idle'
    SCANNING         = 'scanning'
    RESULT_DISPLAYED = 'result_displayed'


class ScannerEvent(enum.Enum):
    START           = 'start'
    FRAME_DECODED   = 'frame_decoded'
    TIMEOUT_ELAPSED = 'timeout_elapsed'
    STOP            = 'stop'


TRANSITIONS = {
    (ScannerState.IDLE,             ScannerEvent.START):           ScannerState.SCANNING,
    (ScannerState.SCANNING,         ScannerEvent.FRAME_DECODED):   ScannerState.RESULT_DISPLAYED,
    (ScannerState.RESULT_DISPLAYED, ScannerEvent.TIMEOUT_ELAPSED): ScannerState.SCANNING,
    (ScannerState.SCANNING,         ScannerEvent.STOP):            ScannerState.IDLE,
    (ScannerState.RESULT_DISPLAYED, ScannerEvent.STOP):            ScannerState.IDLE,
}


class ScannerStateMachine:

    def __init__(self, resume_delay=5.0, error_resume_delay=3.0, clock=None):
        self.resume_delay       = resume_delay
        self.error_resume_delay = error_resume_delay
        self.clock              = clock or time.monotonic
        self.state              = ScannerState.IDLE
        self.last_result        = None
        self.resume_at          = None

    @classmethod
    def from_config(cls, config, clock=None):
        return cls(
            resume_delay=config.get('SCANNER_RESUME_DELAY', 5.0),
            error_resume_delay=config.get('SCANNER_ERROR_RESUME_DELAY', 3.0),
            clock=clock,
        )

    @property
    def is_scanning(self):
        return self.state is ScannerState.SCANNING

    def fire(self, event):
        try:
            new_state = TRANSITIONS[(self.state, event)]
        except KeyError:
            raise InvalidScannerTransition(
                f"Cannot apply '{event.value}' while {self.state.value}"
            )
        logger.debug("Scanner %s --%s--> %s", self.state.value, event.value, new_state.value)
        self.state = new_state
        if new_state is not ScannerState.RESULT_DISPLAYED:
            self.resume_at = None
        return new_state

    def start(self):
        return self.fire(ScannerEvent.START)

    def stop(self):
        return self.fire(ScannerEvent.STOP)

    def frame_decoded(self, result, failed=False):
        """
        Record a result and hold it on screen.

        `failed` marks a result whose processing raised; it is shown for
        the shorter error delay.
        """
        self.fire(ScannerEvent.FRAME_DECODED)
        self.last_result = result
        delay = self.error_resume_delay if failed else self.resume_delay
        self.resume_at = self.clock() + delay

    def tick(self):
        """Resume scanning when the displayed result has timed out. Returns True if it did."""
        if self.state is ScannerState.RESULT_DISPLAYED and self.clock() >= self.resume_at:
            self.fire(ScannerEvent.TIMEOUT_ELAPSED)
            return True
        return False
