"""
Biometric Result Types
Tagged value types produced by the estimators and the processor

Every estimate is either a measured value or an explicit Unavailable, so a
genuine reading can never be confused with "no reading".
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union


class ActivityType(str, Enum):
    RELAXED = 'relaxed'
    CLENCHING = 'clenching'
    GRINDING = 'grinding'
    MOTION = 'motion'


class HRSource(str, Enum):
    """Channel / method that produced a heart-rate estimate."""
    IR = 'ir'
    GREEN = 'green'
    FFT = 'fft'
    UNAVAILABLE = 'unavailable'


class SignalStrength(str, Enum):
    """Step classification of the perfusion index."""
    NONE = 'none'          # PI < 0.05 %
    WEAK = 'weak'          # 0.05 % - 0.2 %
    MODERATE = 'moderate'  # 0.2 % - 0.5 %
    STRONG = 'strong'      # > 0.5 %

    @classmethod
    def from_perfusion_index(cls, perfusion_index: float) -> 'SignalStrength':
        if perfusion_index < 0.0005:
            return cls.NONE
        if perfusion_index < 0.002:
            return cls.WEAK
        if perfusion_index < 0.005:
            return cls.MODERATE
        return cls.STRONG


class ProcessingMethod(str, Enum):
    REALTIME = 'realtime'
    BATCH = 'batch'


@dataclass(frozen=True)
class Unavailable:
    """No interpretable value this tick; reason is for diagnostics only."""
    reason: str = 'unavailable'

    def __bool__(self):
        return False


@dataclass(frozen=True)
class HeartRateEstimate:
    bpm: int
    quality: float
    source: HRSource


@dataclass(frozen=True)
class SpO2Estimate:
    percentage: float
    quality: float


HeartRate = Union[HeartRateEstimate, Unavailable]
SpO2 = Union[SpO2Estimate, Unavailable]


@dataclass(frozen=True)
class BiometricResult:
    """
    Composite output of one processor call.

    Partial results (window not yet filled) carry only activity and motion
    level; both estimates are Unavailable and the signal strength is NONE.
    """

    heart_rate: HeartRate
    spo2: SpO2
    perfusion_index: float
    signal_strength: SignalStrength
    is_worn: bool
    activity: ActivityType
    motion_level: float
    processing_method: ProcessingMethod = ProcessingMethod.REALTIME

    @classmethod
    def partial(cls, activity: ActivityType, motion_level: float,
                method: ProcessingMethod = ProcessingMethod.REALTIME) -> 'BiometricResult':
        """Result for a call made before the analysis window has filled."""
        return cls(
            heart_rate=Unavailable('insufficient data'),
            spo2=Unavailable('insufficient data'),
            perfusion_index=0.0,
            signal_strength=SignalStrength.NONE,
            is_worn=False,
            activity=activity,
            motion_level=motion_level,
            processing_method=method,
        )

    @property
    def heart_rate_bpm(self) -> Optional[int]:
        return self.heart_rate.bpm if isinstance(self.heart_rate, HeartRateEstimate) else None

    @property
    def heart_rate_quality(self) -> float:
        return self.heart_rate.quality if isinstance(self.heart_rate, HeartRateEstimate) else 0.0

    @property
    def heart_rate_source(self) -> HRSource:
        if isinstance(self.heart_rate, HeartRateEstimate):
            return self.heart_rate.source
        return HRSource.UNAVAILABLE

    @property
    def spo2_percentage(self) -> Optional[float]:
        return self.spo2.percentage if isinstance(self.spo2, SpO2Estimate) else None

    @property
    def spo2_quality(self) -> float:
        return self.spo2.quality if isinstance(self.spo2, SpO2Estimate) else 0.0

    def with_method(self, method: ProcessingMethod) -> 'BiometricResult':
        return replace(self, processing_method=method)

    def to_dict(self) -> dict:
        """
        Flatten to plain values for logging and reports.

        Returns:
            Dict with None for unavailable estimates and enum values as strings.
        """
        return {
            'heart_rate_bpm': self.heart_rate_bpm,
            'heart_rate_quality': self.heart_rate_quality,
            'heart_rate_source': self.heart_rate_source.value,
            'spo2_percent': self.spo2_percentage,
            'spo2_quality': self.spo2_quality,
            'perfusion_index': self.perfusion_index,
            'signal_strength': self.signal_strength.value,
            'is_worn': self.is_worn,
            'activity': self.activity.value,
            'motion_level': self.motion_level,
            'processing_method': self.processing_method.value,
        }
