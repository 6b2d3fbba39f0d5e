"""
Virtual clock for simulated time.

The clock is either Live (simulated time == wall time) or Custom, where

    simulated = base_instant + (wall_now - wall_anchor) * speed

Every transition first captures the current simulated instant as the new
base_instant and the current wall time as the new anchor, so simulated time
is continuous in wall time even though its slope changes.
"""

import math
import time
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from numbers import Real
from typing import Callable, NamedTuple, Union

logger = logging.getLogger(__name__)

# Largest accepted |speed|; keeps simulated time inside the datetime range
MAX_SPEED = 1.0e6

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Representable POSIX range for aware datetimes
_MIN_TIMESTAMP = datetime(1, 1, 2, tzinfo=timezone.utc).timestamp()
_MAX_TIMESTAMP = datetime(9999, 12, 30, tzinfo=timezone.utc).timestamp()

Instant = Union[datetime, float]


class ClockMode(Enum):
    LIVE = 'live'
    CUSTOM = 'custom'


class SimulatedInstant(NamedTuple):
    """
    A simulated point in time with the wall-clock reading it was derived
    from and the speed in effect when it was captured.
    """
    timestamp: float   # simulated POSIX seconds
    wall_time: float   # wall POSIX seconds at capture
    speed: float

    def to_datetime(self) -> datetime:
        return timestamp_to_datetime(self.timestamp)


def timestamp_to_datetime(timestamp: float) -> datetime:
    """Convert POSIX seconds to an aware UTC datetime, clamped to the datetime range."""
    clamped = min(max(timestamp, _MIN_TIMESTAMP), _MAX_TIMESTAMP)
    return _EPOCH + timedelta(seconds=clamped)


def _is_valid_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


class VirtualClock:
    """Owns simulated time, playback speed, direction and pause state."""

    def __init__(self, wall_clock: Callable[[], float] = time.time):
        """
        Initialize a live clock.

        Args:
            wall_clock: Source of wall time in POSIX seconds (injectable for tests)
        """
        self._wall_clock = wall_clock
        self._mode = ClockMode.LIVE
        self._speed = 1.0
        self._resume_speed = 1.0

        now = wall_clock()
        self._base_instant = now
        self._wall_anchor = now

        # Bumped on every transition so consumers can detect re-basing cheaply
        self._revision = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ClockMode:
        return self._mode

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def revision(self) -> int:
        """Counter incremented by every speed, direction, pause or instant change."""
        return self._revision

    @property
    def is_live(self) -> bool:
        return self._mode is ClockMode.LIVE

    @property
    def is_paused(self) -> bool:
        return self._mode is ClockMode.CUSTOM and self._speed == 0.0

    def _effective_at(self, wall_now: float) -> float:
        if self._mode is ClockMode.LIVE:
            return wall_now
        return self._base_instant + (wall_now - self._wall_anchor) * self._speed

    def effective_timestamp(self) -> float:
        """Current simulated instant as POSIX seconds."""
        return self._effective_at(self._wall_clock())

    def get_effective_instant(self) -> datetime:
        """Current simulated instant as an aware UTC datetime."""
        return timestamp_to_datetime(self.effective_timestamp())

    now = get_effective_instant

    def capture(self) -> SimulatedInstant:
        """Snapshot the current simulated instant with its wall reference and speed."""
        wall_now = self._wall_clock()
        return SimulatedInstant(self._effective_at(wall_now), wall_now, self._speed)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _rebase(self, new_speed: float):
        """Capture the current instant, then continue from it at new_speed."""
        wall_now = self._wall_clock()
        self._base_instant = self._effective_at(wall_now)
        self._wall_anchor = wall_now
        self._mode = ClockMode.CUSTOM
        self._speed = float(new_speed)
        self._revision += 1

        if self._speed != 0.0:
            self._resume_speed = abs(self._speed)

    def set_speed(self, speed: float) -> bool:
        """
        Change playback speed without a jump in simulated time.

        A speed of 0 pauses; resume() later restores the last non-zero
        magnitude.

        Args:
            speed: Simulated seconds per wall second (negative runs backwards)

        Returns:
            True if accepted, False if rejected (state unchanged)
        """
        if not _is_valid_number(speed) or abs(speed) > MAX_SPEED:
            logger.warning(f"Rejected clock speed {speed!r}")
            return False

        self._rebase(speed)
        logger.debug(f"Clock speed set to {self._speed}x")
        return True

    def set_instant(self, instant: Instant) -> bool:
        """
        Jump to an explicit simulated instant, keeping the current speed.

        Args:
            instant: Aware datetime (naive is taken as UTC) or POSIX seconds

        Returns:
            True if accepted, False if rejected (state unchanged)
        """
        if isinstance(instant, datetime):
            if instant.tzinfo is None:
                instant = instant.replace(tzinfo=timezone.utc)
            timestamp = instant.timestamp()
        elif _is_valid_number(instant):
            timestamp = float(instant)
        else:
            logger.warning(f"Rejected clock instant {instant!r}")
            return False

        if not _MIN_TIMESTAMP <= timestamp <= _MAX_TIMESTAMP:
            logger.warning(f"Rejected out-of-range clock instant {instant!r}")
            return False

        self._base_instant = timestamp
        self._wall_anchor = self._wall_clock()
        self._mode = ClockMode.CUSTOM
        self._revision += 1
        logger.debug(f"Clock set to {timestamp_to_datetime(timestamp).isoformat()}")
        return True

    def pause(self):
        """Freeze simulated time."""
        if self.is_paused:
            return
        self._rebase(0.0)
        logger.debug("Clock paused")

    def resume(self):
        """Resume at the last non-zero speed magnitude (default 1x)."""
        if not self.is_paused:
            return
        self._rebase(self._resume_speed or 1.0)
        logger.debug(f"Clock resumed at {self._speed}x")

    def reverse(self):
        """Flip direction, keeping the magnitude; a paused clock starts running backwards at 1x."""
        new_speed = -1.0 if self._speed == 0.0 else -self._speed
        self._rebase(new_speed)
        logger.debug(f"Clock reversed to {self._speed}x")

    def reset_to_live(self):
        """Return to wall time at 1x."""
        now = self._wall_clock()
        self._mode = ClockMode.LIVE
        self._speed = 1.0
        self._resume_speed = 1.0
        self._base_instant = now
        self._wall_anchor = now
        self._revision += 1
        logger.debug("Clock reset to live time")

    def __repr__(self):
        return (f"VirtualClock(mode={self._mode.value}, speed={self._speed}, "
                f"instant={self.get_effective_instant().isoformat()})")
