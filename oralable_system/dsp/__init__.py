"""
Oralable Signal Processing
Per-stage PPG / accelerometer algorithms used by the biometric processor

- motion:     LMS motion-artifact compensation
- activity:   relaxed / clenching / grinding / motion classification
- filters:    recursive live band-pass and Butterworth IIR sections
- heart_rate: peak detection + FFT spectral estimation with cross-validation
- spo2:       ratio-of-ratios SpO2
- perfusion:  perfusion index, signal strength and worn detection
- features:   offline whole-recording features (beats, HRV, IR DC shift)
"""

from .motion import MotionCompensator
from .activity import ActivityClassifier
from .filters import RecursiveBandpass, ButterworthFilter
from .heart_rate import (
    HeartRateEstimator,
    SpectralHeartRateEstimator,
    SpectralPlan,
    detect_peaks,
    estimate_peak_heart_rate,
)
from .spo2 import estimate_spo2, spo2_from_ratio
from .perfusion import perfusion_index, signal_strength, is_worn
from .features import (
    SessionFeatures,
    bandpass_heart_rate,
    extract_session_features,
    hrv_metrics,
    ir_dc_shift,
)

__all__ = [
    'MotionCompensator',
    'ActivityClassifier',
    'RecursiveBandpass',
    'ButterworthFilter',
    'HeartRateEstimator',
    'SpectralHeartRateEstimator',
    'SpectralPlan',
    'detect_peaks',
    'estimate_peak_heart_rate',
    'estimate_spo2',
    'spo2_from_ratio',
    'perfusion_index',
    'signal_strength',
    'is_worn',
    'SessionFeatures',
    'bandpass_heart_rate',
    'extract_session_features',
    'hrv_metrics',
    'ir_dc_shift',
]
