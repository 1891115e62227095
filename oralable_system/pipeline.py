"""
Oralable System - Sensor Pipeline
=================================
Entry point for raw BLE notifications from one Oralable device.

Usage:
    pipeline = SensorPipeline(BiometricConfiguration.oralable())
    pipeline.start()
    # ... BLE callbacks call pipeline.handle_ppg_packet(data) etc. ...
    pipeline.stop()

Streams handled:
    - PPG           : frame counter + N x (red, ir, green)
    - Accelerometer : frame counter + N x (x, y, z)
    - Temperature   : frame counter + centi-degrees C
    - Battery       : millivolts
    - Combined      : 18-byte PPG + accelerometer sample (replay / legacy firmware)

Each PPG sample is paired with the most recent accelerometer sample before
being handed to the collector. Until the first accelerometer packet
arrives the device is assumed stationary (0, 0, +1 g).
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from oralable_system.protocol.frames import FrameCounterTracker
from oralable_system.protocol.parser import (
    AccelSample,
    RawSample,
    parse_accelerometer_packet,
    parse_battery_millivolts,
    parse_combined_sample,
    parse_ppg_packet,
    parse_temperature_packet,
    battery_percentage,
)
from oralable_system.results import BiometricResult
from oralable_system.sensors.oralable.collector import BiometricCollector, ResultCallback
from oralable_system.sensors.oralable.config import BiometricConfiguration, CollectorConfig
from oralable_system.sensors.oralable.processor import BiometricProcessor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stream labels
# ---------------------------------------------------------------------------
STREAM_PPG   = 'ppg'
STREAM_ACCEL = 'accel'


class SensorPipeline:
    """
    Owns decoding, frame tracking and sample pairing for one device.

    Responsibilities:
      - Decode each notification kind, ignoring malformed packets
      - Track frame counters per stream and report packet loss
      - Pair PPG samples with the latest accelerometer sample
      - Submit paired samples to the BiometricCollector
      - Keep the latest temperature and battery readings
    """

    def __init__(
        self,
        config: Optional[BiometricConfiguration] = None,
        collector_config: Optional[CollectorConfig] = None,
        on_result: Optional[ResultCallback] = None,
    ):
        """
        Args:
            config           : Biometric processing configuration
            collector_config : Queue / worker settings
            on_result        : Callback for every BiometricResult (worker thread)
        """
        self.config = config if config else BiometricConfiguration.oralable()
        self.collector = BiometricCollector(
            processor=BiometricProcessor(self.config),
            config=collector_config,
            on_result=on_result,
        )

        self.trackers = {
            STREAM_PPG: FrameCounterTracker(STREAM_PPG),
            STREAM_ACCEL: FrameCounterTracker(STREAM_ACCEL),
        }

        self._lock = threading.Lock()
        self._latest_accel = self._stationary_accel()

        self.latest_temperature_c: Optional[float] = None
        self.latest_battery_mv: Optional[int] = None
        self.latest_battery_percent: Optional[int] = None
        self.malformed_packets = 0

        logger.info(f"SensorPipeline created ({self.config.sample_rate:.0f} Hz)")

    def _stationary_accel(self) -> AccelSample:
        return AccelSample(x=0, y=0, z=int(self.config.accel_lsb_per_g),
                           timestamp=datetime.now(timezone.utc))

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def start(self):
        """Start the processing worker."""
        logger.info("=" * 55)
        logger.info("  Oralable Sensor Pipeline - starting")
        logger.info("=" * 55)
        self.collector.start()

    def stop(self):
        """Drain queued samples and stop the processing worker."""
        logger.info("Stopping sensor pipeline...")
        self.collector.stop()
        logger.info("✓ Sensor pipeline stopped")

    def reset(self):
        """
        Forget stream state and processor history (reconnect / new session).

        Samples still queued from before the call are discarded; the
        processor is reset on the worker thread ahead of anything submitted
        afterwards.
        """
        with self._lock:
            for tracker in self.trackers.values():
                tracker.reset()
            self._latest_accel = self._stationary_accel()
            self.malformed_packets = 0
        self.collector.reset()
        logger.info("Sensor pipeline reset")

    @property
    def latest_result(self) -> Optional[BiometricResult]:
        return self.collector.latest_result

    # -----------------------------------------------------------------------
    # Notification handlers
    # -----------------------------------------------------------------------

    def handle_ppg_packet(self, data: bytes) -> int:
        """
        Decode a PPG notification and submit paired samples.

        Returns:
            Number of samples submitted.
        """
        frame = parse_ppg_packet(data)
        if frame is None:
            self._malformed(STREAM_PPG, data)
            return 0

        with self._lock:
            self.trackers[STREAM_PPG].record(frame.frame_counter, time.monotonic())
            accel = self._latest_accel

        submitted = 0
        for ppg in frame.samples:
            if self.collector.submit(RawSample.from_parts(ppg, accel)):
                submitted += 1

        logger.debug(f"PPG frame {frame.frame_counter}: {len(frame.samples)} samples")
        return submitted

    def handle_accel_packet(self, data: bytes) -> int:
        """
        Decode an accelerometer notification and update the pairing sample.

        Returns:
            Number of samples decoded.
        """
        frame = parse_accelerometer_packet(data)
        if frame is None:
            self._malformed(STREAM_ACCEL, data)
            return 0

        with self._lock:
            self.trackers[STREAM_ACCEL].record(frame.frame_counter, time.monotonic())
            if frame.samples:
                self._latest_accel = frame.samples[-1]

        return len(frame.samples)

    def handle_temperature_packet(self, data: bytes) -> Optional[float]:
        """Decode a temperature notification; returns degrees C or None."""
        parsed = parse_temperature_packet(data)
        if parsed is None:
            self._malformed('temperature', data)
            return None

        _, celsius = parsed
        self.latest_temperature_c = celsius
        return celsius

    def handle_battery_packet(self, data: bytes) -> Optional[int]:
        """Decode a battery notification; returns charge percentage or None."""
        millivolts = parse_battery_millivolts(data)
        if millivolts is None:
            self._malformed('battery', data)
            return None

        self.latest_battery_mv = millivolts
        self.latest_battery_percent = battery_percentage(millivolts)
        return self.latest_battery_percent

    def handle_combined_sample(self, data: bytes) -> bool:
        """Decode an 18-byte combined sample and submit it as-is."""
        sample = parse_combined_sample(data)
        if sample is None:
            self._malformed('combined', data)
            return False
        return self.collector.submit(sample)

    def _malformed(self, stream: str, data: bytes):
        self.malformed_packets += 1
        logger.debug(f"Ignoring malformed {stream} packet ({len(data)} bytes)")

    # -----------------------------------------------------------------------
    # Status
    # -----------------------------------------------------------------------

    def get_status(self) -> dict:
        """
        Return a summary of stream and processing state for logging / UI display.
        """
        with self._lock:
            streams = {name: tracker.get_status() for name, tracker in self.trackers.items()}

        return {
            'streams'          : streams,
            'malformed_packets': self.malformed_packets,
            'temperature_c'    : self.latest_temperature_c,
            'battery_mv'       : self.latest_battery_mv,
            'battery_percent'  : self.latest_battery_percent,
            'collector'        : self.collector.get_status(),
        }

    # -----------------------------------------------------------------------
    # Dunder helpers
    # -----------------------------------------------------------------------

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def __repr__(self):
        return (
            f"<SensorPipeline("
            f"running={self.collector.is_running}, "
            f"lost={sum(t.packets_lost for t in self.trackers.values())})>"
        )
