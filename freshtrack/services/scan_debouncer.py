"""Debouncing state machine for barcode scan events.

Camera scanners report the same physical code many times in a short burst,
and the follow-up "create new product?" prompt is asynchronous. The
debouncer admits at most one scan into the lookup pipeline at a time and
rate-limits admissions:

    Idle --scan admitted--> Processing --match--> Idle
                            Processing --miss---> DialogActive --confirm/cancel/dismiss--> Idle
                            Processing --timeout-> Idle

Scans that arrive while Processing or DialogActive are dropped.
"""

import time
from typing import Callable, Optional

from ..utils.logger import get_scanner_logger

STATE_IDLE = "idle"
STATE_PROCESSING = "processing"
STATE_DIALOG_ACTIVE = "dialog_active"

COOLDOWN_MS = 2000
PROCESSING_TIMEOUT_MS = 5000


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class ScanDebouncer:
    """
    Single authoritative scan state.

    All guards read and write this one object synchronously; there is no
    second copy of the state to drift out of sync. Times are milliseconds
    from ``clock``.
    """

    def __init__(
        self,
        cooldown_ms: int = COOLDOWN_MS,
        processing_timeout_ms: int = PROCESSING_TIMEOUT_MS,
        clock: Callable[[], float] = monotonic_ms
    ):
        self.cooldown_ms = cooldown_ms
        self.processing_timeout_ms = processing_timeout_ms
        self.clock = clock
        self.logger = get_scanner_logger()

        self._state = STATE_IDLE
        self.last_scanned_code: Optional[str] = None
        self.last_scan_time: Optional[float] = None
        self._processing_since: Optional[float] = None
        # Latest caller-supplied event time and the clock reading when it
        # arrived; calls without a time extrapolate from this pair
        self._event_time: Optional[float] = None
        self._event_clock: Optional[float] = None
        # Set when the create-product prompt was cancelled or dismissed, so a
        # lingering read of the same code does not reopen it
        self._guard_duplicate = False

    @property
    def state(self) -> str:
        self.check_timeout()
        return self._state

    @property
    def is_idle(self) -> bool:
        return self.state == STATE_IDLE

    def check_timeout(self, now: Optional[float] = None) -> bool:
        """Force Idle if Processing has been unresolved for too long. Returns True if it did."""
        if self._state != STATE_PROCESSING or self._processing_since is None:
            return False
        now = self._now(now)
        if now - self._processing_since < self.processing_timeout_ms:
            return False

        self.logger.warning(
            f"Scan of '{self.last_scanned_code}' unresolved after "
            f"{self.processing_timeout_ms} ms, resetting scanner"
        )
        self._to_idle()
        return True

    def state_at(self, now: Optional[float] = None) -> str:
        """State as of ``now``, applying the processing timeout first."""
        self.check_timeout(now)
        return self._state

    def scan(self, code: str, now: Optional[float] = None) -> bool:
        """
        Offer a raw scan event.

        Args:
            code: Decoded barcode text
            now: Event time in ms, defaults to the clock

        Returns:
            True if the scan was admitted and the state is now Processing,
            False if it was dropped
        """
        now = self._now(now)
        code = (code or "").strip()
        self.check_timeout(now)

        if not code:
            return self._drop(code, "empty code")

        if self._state != STATE_IDLE:
            return self._drop(code, f"scanner busy ({self._state})")

        if self.last_scan_time is not None:
            elapsed = now - self.last_scan_time
            if elapsed < self.cooldown_ms:
                return self._drop(code, f"cooldown ({elapsed:.0f} ms since last scan)")
            if (
                self._guard_duplicate
                and code == self.last_scanned_code
                and elapsed < 2 * self.cooldown_ms
            ):
                return self._drop(code, f"lingering duplicate ({elapsed:.0f} ms)")

        self._state = STATE_PROCESSING
        self.last_scanned_code = code
        self.last_scan_time = now
        self._processing_since = now
        self._guard_duplicate = False
        self.logger.info(f"Scan admitted: {code}")
        return True

    def resolve_found(self, now: Optional[float] = None) -> bool:
        """Lookup matched and the movement-entry action ran: back to Idle."""
        if not self._expect(STATE_PROCESSING, "resolve_found", now):
            return False
        self._to_idle()
        return True

    def resolve_missing(self, now: Optional[float] = None) -> bool:
        """Lookup missed: the create-product prompt is now showing."""
        if not self._expect(STATE_PROCESSING, "resolve_missing", now):
            return False
        self._state = STATE_DIALOG_ACTIVE
        self._processing_since = None
        return True

    def confirm(self, now: Optional[float] = None) -> bool:
        """User chose to create the product."""
        if not self._expect(STATE_DIALOG_ACTIVE, "confirm", now):
            return False
        self._to_idle()
        return True

    def cancel(self, now: Optional[float] = None) -> bool:
        if not self._expect(STATE_DIALOG_ACTIVE, "cancel", now):
            return False
        self._to_idle(guard_duplicate=True)
        return True

    def dismiss(self, now: Optional[float] = None) -> bool:
        return self.cancel(now)

    def reset(self) -> None:
        """Force Idle from any state and forget the last scan."""
        self._to_idle()
        self.last_scanned_code = None
        self.last_scan_time = None

    def _now(self, now: Optional[float]) -> float:
        if now is not None:
            self._event_time = now
            self._event_clock = self.clock()
            return now
        if self._event_time is not None:
            return self._event_time + (self.clock() - self._event_clock)
        return self.clock()

    def _to_idle(self, guard_duplicate: bool = False) -> None:
        self._state = STATE_IDLE
        self._processing_since = None
        self._guard_duplicate = guard_duplicate

    def _expect(self, expected: str, event: str, now: Optional[float]) -> bool:
        self.check_timeout(now)
        if self._state == expected:
            return True
        self.logger.debug(f"Ignoring {event} in state {self._state}")
        return False

    def _drop(self, code: str, reason: str) -> bool:
        self.logger.debug(f"DuplicateScanSuppressed: '{code}' dropped, {reason}")
        return False
