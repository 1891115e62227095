"""
Oralable Biometric Processor
Per-sample HR, SpO2, perfusion, worn and activity estimation from raw PPG + accelerometer
"""

import logging
import threading
from typing import Optional

import numpy as np

from oralable_system.buffers import CircularBuffer
from oralable_system.dsp.activity import ActivityClassifier
from oralable_system.dsp.filters import RecursiveBandpass
from oralable_system.dsp.heart_rate import HeartRateEstimator, SpectralHeartRateEstimator
from oralable_system.dsp.motion import MotionCompensator
from oralable_system.dsp.perfusion import is_worn, perfusion_index, signal_strength
from oralable_system.dsp.spo2 import estimate_spo2
from oralable_system.results import (
    ActivityType,
    BiometricResult,
    ProcessingMethod,
    SignalStrength,
    SpO2Estimate,
    Unavailable,
)

from .config import BiometricConfiguration

logger = logging.getLogger(__name__)


class BiometricProcessor:
    """
    Signal processing for the Oralable sensor

    Each call to process() consumes one paired PPG + accelerometer sample:
    - Accelerometer normalized to g; motion level = |magnitude - 1|
    - LMS motion compensation of red, IR and green against the motion level
    - Activity classification on compensated IR
    - IR / green band-passed into the heart-rate windows
    - Compensated IR / red (DC kept) into the SpO2 / perfusion windows

    Once every window is full a complete result is produced; before that,
    results carry only activity and motion level.

    All mutating calls are serialized by an internal re-entrant lock, so an
    instance may be shared between threads. The spectral plan survives
    reset() since it depends only on the configuration.
    """

    def __init__(self, config: Optional[BiometricConfiguration] = None):
        """
        Initialize biometric processor

        Args:
            config: Biometric configuration (defaults to the Oralable preset)
        """
        self.config = config if config else BiometricConfiguration.oralable()
        self._lock = threading.RLock()

        # Heart-rate windows (band-passed)
        self.ir_buffer = CircularBuffer(self.config.hr_window_size)
        self.green_buffer = CircularBuffer(self.config.hr_window_size)

        # SpO2 / perfusion windows (DC-carrying)
        self.ir_dc_buffer = CircularBuffer(self.config.spo2_window_size)
        self.red_dc_buffer = CircularBuffer(self.config.spo2_window_size)

        self._bandpass = {
            channel: RecursiveBandpass(alpha_hp=self.config.alpha_hp, alpha_lp=self.config.alpha_lp)
            for channel in ('ir', 'green')
        }
        self._compensators = {
            channel: MotionCompensator(order=self.config.lms_order,
                                       learning_rate=self.config.lms_learning_rate)
            for channel in ('ir', 'red', 'green')
        }
        self.activity_classifier = ActivityClassifier(
            motion_threshold=1.0 + self.config.motion_threshold_g,
            deviation_threshold=self.config.clench_deviation_threshold,
            grinding_variance_threshold=self.config.grinding_variance_threshold,
        )

        self.spectral = SpectralHeartRateEstimator(
            self.config.sample_rate, self.config.min_bpm, self.config.max_bpm
        )
        self.heart_rate_estimator = HeartRateEstimator(
            self.config.sample_rate,
            self.config.min_bpm,
            self.config.max_bpm,
            self.config.min_hr_quality,
            spectral=self.spectral,
        )

        self.sample_count = 0
        self.last_result: Optional[BiometricResult] = None
        self._closed = False

        logger.info(
            f"Biometric Processor initialized ({self.config.sample_rate:.0f} Hz, "
            f"HR window {self.config.hr_window_size}, SpO2 window {self.config.spo2_window_size})"
        )

    # ------------------------------------------------------------------
    # Per-sample processing
    # ------------------------------------------------------------------

    def _motion_level(self, accel_x: float, accel_y: float, accel_z: float) -> float:
        scale = self.config.accel_lsb_per_g
        magnitude = float(np.sqrt((accel_x / scale) ** 2 + (accel_y / scale) ** 2 + (accel_z / scale) ** 2))
        return abs(magnitude - 1.0)

    def _buffers_ready(self) -> bool:
        return (self.ir_buffer.is_full and self.green_buffer.is_full
                and self.ir_dc_buffer.is_full and self.red_dc_buffer.is_full)

    def process(self, ir: float, red: float, green: float,
                accel_x: float, accel_y: float, accel_z: float) -> BiometricResult:
        """
        Process one paired sample for real-time output

        Args:
            ir:      IR ADC counts
            red:     Red ADC counts
            green:   Green ADC counts
            accel_x: Accelerometer X (raw LSB)
            accel_y: Accelerometer Y (raw LSB)
            accel_z: Accelerometer Z (raw LSB)

        Returns:
            BiometricResult tagged realtime (partial until the windows fill)
        """
        with self._lock:
            self.sample_count += 1
            motion_level = self._motion_level(accel_x, accel_y, accel_z)

            ir_clean = self._compensators['ir'].filter(float(ir), motion_level)
            red_clean = self._compensators['red'].filter(float(red), motion_level)
            green_clean = self._compensators['green'].filter(float(green), motion_level)

            activity = self.activity_classifier.classify(ir_clean, motion_level + 1.0)

            self.ir_buffer.append(self._bandpass['ir'].update(ir_clean))
            self.green_buffer.append(self._bandpass['green'].update(green_clean))
            self.ir_dc_buffer.append(ir_clean)
            self.red_dc_buffer.append(red_clean)

            if not self._buffers_ready():
                result = BiometricResult.partial(activity, motion_level)
            else:
                result = self._evaluate(activity, motion_level)

            self.last_result = result
            return result

    def _evaluate(self, activity: ActivityType, motion_level: float) -> BiometricResult:
        ir_dc = self.ir_dc_buffer.to_array()

        pi = perfusion_index(ir_dc)
        strength = signal_strength(pi)

        if activity == ActivityType.MOTION:
            heart_rate = Unavailable('motion')
        else:
            heart_rate = self.heart_rate_estimator.estimate(
                self.ir_buffer.to_array(), self.green_buffer.to_array()
            )

        if activity == ActivityType.MOTION:
            spo2 = Unavailable('motion')
        elif strength in (SignalStrength.NONE, SignalStrength.WEAK):
            spo2 = Unavailable(f'signal {strength.value}')
        else:
            spo2 = estimate_spo2(
                self.red_dc_buffer.to_array(), ir_dc, self.config.min_spo2, self.config.max_spo2
            )
            if isinstance(spo2, SpO2Estimate) and spo2.quality < self.config.min_spo2_quality:
                spo2 = Unavailable(f'SpO2 quality {spo2.quality:.2f} below gate')

        worn = is_worn(pi, heart_rate, self.config.min_perfusion_index, self.config.min_hr_quality)

        return BiometricResult(
            heart_rate=heart_rate,
            spo2=spo2,
            perfusion_index=pi,
            signal_strength=strength,
            is_worn=worn,
            activity=activity,
            motion_level=motion_level,
            processing_method=ProcessingMethod.REALTIME,
        )

    def process_batch(self, ir, red, green, accel_x, accel_y, accel_z) -> BiometricResult:
        """
        Replay a recorded sequence from a clean state

        Resets the processor, feeds samples up to the shortest input length
        and returns the final result. The lock is held for the whole replay.

        Args:
            ir, red, green:            Optical channels
            accel_x, accel_y, accel_z: Accelerometer axes (raw LSB)

        Returns:
            Final BiometricResult tagged batch
        """
        with self._lock:
            self.reset()

            channels = [np.asarray(c, dtype=np.float64) for c in (ir, red, green, accel_x, accel_y, accel_z)]
            count = min(len(c) for c in channels)
            if count == 0:
                logger.warning("Batch processing called with no samples")
                return BiometricResult.partial(ActivityType.RELAXED, 0.0, ProcessingMethod.BATCH)

            result = None
            for i in range(count):
                result = self.process(*(float(c[i]) for c in channels))

            logger.info(f"Batch processed {count} samples: HR={result.heart_rate_bpm} SpO2={result.spo2_percentage}")
            result = result.with_method(ProcessingMethod.BATCH)
            self.last_result = result
            return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self):
        """
        Clear buffers, filter and classifier state.

        Call on reconnect or at the start of a new session. The cached
        spectral plan is kept.

        Returns:
            None.
        """
        with self._lock:
            for buffer in (self.ir_buffer, self.green_buffer, self.ir_dc_buffer, self.red_dc_buffer):
                buffer.clear()
            for bandpass in self._bandpass.values():
                bandpass.reset()
            for compensator in self._compensators.values():
                compensator.reset()
            self.activity_classifier.reset()

            self.sample_count = 0
            self.last_result = None
            logger.debug("Biometric processor reset")

    def close(self):
        """Release the cached spectral plan."""
        with self._lock:
            self.spectral.release()
            self._closed = True
            logger.info("Biometric processor closed")

    def get_status(self) -> dict:
        """
        Get processor status

        Returns:
            Status dictionary
        """
        with self._lock:
            return {
                'sample_rate': self.config.sample_rate,
                'samples_processed': self.sample_count,
                'hr_window_fill': len(self.ir_buffer),
                'hr_window_size': self.config.hr_window_size,
                'spo2_window_fill': len(self.ir_dc_buffer),
                'spo2_window_size': self.config.spo2_window_size,
                'spectral_plan_builds': self.spectral.plan_builds,
                'closed': self._closed,
                'last_result': self.last_result.to_dict() if self.last_result else None,
            }

    def __repr__(self):
        return f"<BiometricProcessor(rate={self.config.sample_rate:.0f}Hz, samples={self.sample_count})>"
