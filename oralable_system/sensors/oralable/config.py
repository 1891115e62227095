"""
Oralable Biometric Configuration
Sampling, window, physiological-bound and quality-gate parameters
"""

import logging
from dataclasses import dataclass, asdict, fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BiometricConfiguration:
    """
    Parameters for the Oralable biometric processor.

    Immutable once constructed; one instance is shared read-only by every
    call for the lifetime of a session. The deviation / variance / motion
    thresholds are tuned to the Oralable ADC scale at 50 Hz and should be
    revalidated for other hardware.
    """

    # Sampling
    sample_rate: float = 50.0
    hr_window_seconds: float = 3.0
    spo2_window_seconds: float = 3.0

    # Motion
    motion_threshold_g: float = 0.15
    accel_lsb_per_g: float = 16384.0  # +/-2 g full scale

    # Physiological bounds
    min_bpm: float = 40.0
    max_bpm: float = 180.0
    min_spo2: float = 70.0
    max_spo2: float = 100.0

    # Live band-pass smoothing coefficients
    alpha_hp: float = 0.05
    alpha_lp: float = 0.15

    # Quality gates
    min_perfusion_index: float = 0.001
    min_hr_quality: float = 0.5
    min_spo2_quality: float = 0.0      # SpO2 quality only reaches 1.0 at 10 % AC/DC

    # Activity classifier
    clench_deviation_threshold: float = 5000.0
    grinding_variance_threshold: float = 1000.0

    # Motion compensation (LMS)
    lms_order: int = 32
    lms_learning_rate: float = 0.01

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.hr_window_seconds <= 0 or self.spo2_window_seconds <= 0:
            raise ValueError("window lengths must be positive")
        if not 0 < self.min_bpm < self.max_bpm:
            raise ValueError(f"invalid BPM bounds [{self.min_bpm}, {self.max_bpm}]")
        if not 0 < self.min_spo2 < self.max_spo2:
            raise ValueError(f"invalid SpO2 bounds [{self.min_spo2}, {self.max_spo2}]")
        for name in ('alpha_hp', 'alpha_lp'):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        for name in ('min_hr_quality', 'min_spo2_quality'):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.lms_order < 1:
            raise ValueError(f"lms_order must be at least 1, got {self.lms_order}")
        if self.accel_lsb_per_g <= 0:
            raise ValueError(f"accel_lsb_per_g must be positive, got {self.accel_lsb_per_g}")

    @property
    def hr_window_size(self) -> int:
        """Samples in the heart-rate analysis window."""
        return int(self.sample_rate * self.hr_window_seconds)

    @property
    def spo2_window_size(self) -> int:
        """Samples in the SpO2 analysis window."""
        return int(self.sample_rate * self.spo2_window_seconds)

    @classmethod
    def oralable(cls) -> 'BiometricConfiguration':
        """
        Create a configuration for the Oralable device.

        Returns:
            BiometricConfiguration at 50 Hz with 3 s windows.
        """
        return cls(sample_rate=50.0, hr_window_seconds=3.0, spo2_window_seconds=3.0)

    @classmethod
    def anr(cls) -> 'BiometricConfiguration':
        """
        Create a configuration for the ANR M40 muscle sensor.

        Returns:
            BiometricConfiguration at 100 Hz with 3 s windows.
        """
        return cls(sample_rate=100.0, hr_window_seconds=3.0, spo2_window_seconds=3.0)

    @classmethod
    def from_dict(cls, values: dict) -> 'BiometricConfiguration':
        """
        Build a configuration from a dict of overrides.

        Args:
            values: Field name -> value. Unknown keys are ignored.

        Returns:
            BiometricConfiguration with defaults for missing fields.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in values.items() if k in known})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CollectorConfig:
    """Queue and worker settings for the biometric collector."""

    queue_size: int = 1000          # Samples buffered between producer and worker
    poll_timeout: float = 0.1       # Worker wake-up interval while idle (seconds)
    stop_timeout: float = 2.0       # Join timeout on stop (seconds)
    drop_log_interval: int = 100    # Log every Nth dropped sample
