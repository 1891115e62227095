"""
Frame Counter Tracking
Packet-loss detection and arrival-rate statistics per BLE stream
"""

import logging
import time
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)


class FrameCounterTracker:
    """
    Validates the sequence counter prefixed to each packet of one stream.

    A counter that is neither previous + 1 nor 0 (firmware restart) is a gap;
    when it jumps forward the skipped packets are counted as lost. Backward
    jumps (duplicates, reordering) are logged but not counted.
    """

    RECENT_INTERVALS = 100

    def __init__(self, stream_name: str):
        """
        Args:
            stream_name: Label used in log messages, e.g. 'ppg' or 'accel'
        """
        self.stream_name = stream_name

        self.packets_seen = 0
        self.packets_lost = 0
        self.first_counter: Optional[int] = None
        self.last_counter: Optional[int] = None

        self._last_arrival: Optional[float] = None
        self._intervals = deque(maxlen=self.RECENT_INTERVALS)

    def record(self, frame_counter: int, arrival_time: Optional[float] = None) -> int:
        """
        Register a received packet.

        Args:
            frame_counter: Decoded sequence counter
            arrival_time:  Monotonic arrival time in seconds (defaults to now)

        Returns:
            Number of packets detected as lost before this one.
        """
        arrival = arrival_time if arrival_time is not None else time.monotonic()
        lost = 0

        if self.last_counter is not None:
            expected = (self.last_counter + 1) & 0xFFFFFFFF
            if frame_counter != expected and frame_counter != 0:
                lost = frame_counter - expected if frame_counter > expected else 0
                self.packets_lost += lost
                logger.warning(
                    f"{self.stream_name} frame gap: expected {expected}, got {frame_counter}, "
                    f"lost ~{lost} packets (total: {self.packets_lost})"
                )
        else:
            self.first_counter = frame_counter

        if self._last_arrival is not None:
            self._intervals.append(arrival - self._last_arrival)
        self._last_arrival = arrival

        self.last_counter = frame_counter
        self.packets_seen += 1
        return lost

    @property
    def packets_per_second(self) -> float:
        """Mean packet rate over the recent arrival intervals."""
        if not self._intervals:
            return 0.0
        mean_interval = sum(self._intervals) / len(self._intervals)
        return 1.0 / mean_interval if mean_interval > 0 else 0.0

    def reset(self):
        self.packets_seen = 0
        self.packets_lost = 0
        self.first_counter = None
        self.last_counter = None
        self._last_arrival = None
        self._intervals.clear()

    def get_status(self) -> dict:
        """
        Return loss and rate statistics for this stream.

        Returns:
            Dict with packet counts, counters and interval statistics.
        """
        return {
            'stream': self.stream_name,
            'packets_seen': self.packets_seen,
            'packets_lost': self.packets_lost,
            'first_counter': self.first_counter,
            'last_counter': self.last_counter,
            'packets_per_second': self.packets_per_second,
            'min_interval': min(self._intervals) if self._intervals else 0.0,
            'max_interval': max(self._intervals) if self._intervals else 0.0,
        }

    def __repr__(self):
        return f"<FrameCounterTracker(stream={self.stream_name}, lost={self.packets_lost})>"
