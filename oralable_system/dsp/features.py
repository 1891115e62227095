"""
Offline Session Features
Zero-phase feature extraction over a complete recording: beat detection,
HRV (SDNN / RMSSD) and IR DC baseline shift

Used after a session, where whole-recording filtfilt avoids the phase
distortion of the live causal path.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

import numpy as np
from scipy.signal import find_peaks

from .filters import ButterworthFilter

logger = logging.getLogger(__name__)


HR_BANDPASS_LOW = 0.5       # Hz
HR_BANDPASS_HIGH = 8.0      # Hz
IR_DC_LOWPASS = 0.8         # Hz
FILTER_ORDER = 4
MIN_PEAK_DISTANCE_S = 0.4
PEAK_PROMINENCE_FACTOR = 0.5
DC_ROLLING_WINDOW_S = 5.0
DC_REFERENCE_WINDOW_S = 1.0
RR_MIN_S = 0.33             # 180 BPM
RR_MAX_S = 1.5              # 40 BPM


@dataclass
class SessionFeatures:
    """Whole-recording summary features."""
    duration_seconds: float
    heart_rate_bpm: Optional[int]
    beat_count: int
    sdnn_ms: Optional[float]
    rmssd_ms: Optional[float]
    ir_dc_shift: Optional[float]

    def to_dict(self) -> dict:
        return asdict(self)


def detect_beats(signal, sample_rate: float) -> np.ndarray:
    """
    Band-pass (0.5-8 Hz, zero-phase) and find prominent systolic peaks.

    Args:
        signal:      Raw PPG channel
        sample_rate: Sampling rate in Hz

    Returns:
        Peak indices; empty when the recording is too short or flat.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < int(sample_rate * 3):
        return np.array([], dtype=int)

    bandpass = ButterworthFilter('bandpass', HR_BANDPASS_LOW, sample_rate,
                                 cutoff_high=HR_BANDPASS_HIGH, order=FILTER_ORDER)
    filtered = bandpass.filtfilt(x)

    std = float(filtered.std())
    if std <= 1.0:
        return np.array([], dtype=int)

    peaks, _ = find_peaks(
        filtered,
        distance=max(1, int(MIN_PEAK_DISTANCE_S * sample_rate)),
        prominence=std * PEAK_PROMINENCE_FACTOR,
    )
    return peaks


def heart_rate_from_beats(peaks: np.ndarray, sample_rate: float,
                          min_bpm: float = 40.0, max_bpm: float = 180.0) -> Optional[int]:
    """Median-interval heart rate, or None if no plausible interval exists."""
    if len(peaks) < 2:
        return None

    intervals = np.diff(peaks) / sample_rate
    intervals = intervals[(intervals >= 60.0 / max_bpm) & (intervals <= 60.0 / min_bpm)]
    if intervals.size == 0:
        return None

    bpm = int(60.0 / float(np.median(intervals)))
    return bpm if min_bpm <= bpm <= max_bpm else None


def bandpass_heart_rate(signal, sample_rate: float) -> Optional[int]:
    """Heart rate of a whole recording from zero-phase band-passed beats."""
    return heart_rate_from_beats(detect_beats(signal, sample_rate), sample_rate)


def hrv_metrics(peaks: np.ndarray, sample_rate: float) -> Optional[dict]:
    """
    Time-domain heart rate variability from beat positions.

    Args:
        peaks:       Beat indices
        sample_rate: Sampling rate in Hz

    Returns:
        Dict with sdnn_ms, rmssd_ms and rr_count, or None with fewer than
        two plausible RR intervals.
    """
    if len(peaks) < 3:
        return None

    rr = np.diff(peaks) / sample_rate
    rr = rr[(rr >= RR_MIN_S) & (rr <= RR_MAX_S)]
    if rr.size < 2:
        return None

    # SDNN: sample standard deviation of RR intervals
    sdnn = float(np.std(rr, ddof=1)) * 1000.0

    # RMSSD: root mean square of successive differences
    successive_diffs = np.diff(rr)
    rmssd = float(np.sqrt(np.mean(successive_diffs ** 2))) * 1000.0

    return {'sdnn_ms': sdnn, 'rmssd_ms': rmssd, 'rr_count': int(rr.size)}


def ir_dc_shift(ir, sample_rate: float) -> Optional[float]:
    """
    Drop of the IR DC baseline across the last rolling window.

    The baseline is a 0.8 Hz zero-phase low-pass of IR. The shift is the mean
    of the first second of the last 5 s minus the mean of the whole 5 s;
    positive values mean the baseline fell (occlusion, muscle contraction).

    Returns:
        Shift in ADC units, or None for recordings shorter than one second.
    """
    x = np.asarray(ir, dtype=np.float64)
    reference = int(DC_REFERENCE_WINDOW_S * sample_rate)
    if x.size < max(reference, 4):
        return None

    lowpass = ButterworthFilter('lowpass', IR_DC_LOWPASS, sample_rate, order=FILTER_ORDER)
    dc = lowpass.filtfilt(x)

    window = dc[-int(DC_ROLLING_WINDOW_S * sample_rate):]
    return float(window[:reference].mean() - window.mean())


def extract_session_features(ir, green, sample_rate: float) -> SessionFeatures:
    """
    Compute whole-recording features.

    Beats are taken from the green channel, falling back to IR when green
    yields fewer than two beats.

    Args:
        ir:          Raw IR channel
        green:       Raw green channel
        sample_rate: Sampling rate in Hz

    Returns:
        SessionFeatures
    """
    ir = np.asarray(ir, dtype=np.float64)
    green = np.asarray(green, dtype=np.float64)

    peaks = detect_beats(green, sample_rate)
    if len(peaks) < 2:
        logger.debug("Too few beats on green channel, using IR")
        peaks = detect_beats(ir, sample_rate)

    hrv = hrv_metrics(peaks, sample_rate)
    features = SessionFeatures(
        duration_seconds=len(ir) / sample_rate,
        heart_rate_bpm=heart_rate_from_beats(peaks, sample_rate),
        beat_count=int(len(peaks)),
        sdnn_ms=hrv['sdnn_ms'] if hrv else None,
        rmssd_ms=hrv['rmssd_ms'] if hrv else None,
        ir_dc_shift=ir_dc_shift(ir, sample_rate),
    )

    logger.info(
        f"✓ Session features: {features.beat_count} beats, HR={features.heart_rate_bpm}, "
        f"SDNN={features.sdnn_ms}, RMSSD={features.rmssd_ms}"
    )
    return features
