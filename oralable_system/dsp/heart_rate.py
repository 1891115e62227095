"""
Heart Rate Estimation
Adaptive-threshold peak detection cross-validated against an FFT spectral
estimate, with IR -> green -> spectral fallback
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import fft as sp_fft
from scipy.signal import windows

from oralable_system.results import HeartRate, HeartRateEstimate, HRSource, Unavailable

logger = logging.getLogger(__name__)


FLAT_SIGNAL_STD = 1.0
THRESHOLD_STD_FACTOR = 0.6
MIN_SPECTRAL_SAMPLES = 128
CROSS_VALIDATION_TOLERANCE_BPM = 15
FFT_OVERRIDE_QUALITY_FACTOR = 0.8
SPECTRAL_FALLBACK_QUALITY_FACTOR = 0.7


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def detect_peaks(signal: np.ndarray, sample_rate: float, max_bpm: float) -> np.ndarray:
    """
    Local maxima above mean + 0.6 std, gated by the max-rate refractory period.

    Args:
        signal:      Filtered PPG window
        sample_rate: Sampling rate in Hz
        max_bpm:     Highest plausible rate; sets the refractory interval

    Returns:
        Indices of accepted peaks in ascending order.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 5:
        return np.array([], dtype=int)

    threshold = x.mean() + THRESHOLD_STD_FACTOR * x.std()

    # Interior points only: two samples of margin on each side
    centre = x[2:-2]
    is_peak = (centre > x[1:-3]) & (centre > x[3:-1]) & (centre > threshold)
    candidates = np.flatnonzero(is_peak) + 2

    min_gap = 60.0 / max_bpm
    accepted = []
    for index in candidates:
        if accepted and (index - accepted[-1]) / sample_rate < min_gap:
            continue
        accepted.append(int(index))

    return np.array(accepted, dtype=int)


def estimate_peak_heart_rate(
    signal,
    sample_rate: float,
    min_bpm: float,
    max_bpm: float,
    source: HRSource = HRSource.IR,
) -> HeartRate:
    """
    Time-domain heart rate from inter-peak intervals.

    Args:
        signal:      Filtered PPG window
        sample_rate: Sampling rate in Hz
        min_bpm:     Lower physiological bound
        max_bpm:     Upper physiological bound
        source:      Channel tag for the returned estimate

    Returns:
        HeartRateEstimate, or Unavailable for flat / aperiodic / implausible input.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 5:
        return Unavailable('window too short')

    mean = float(x.mean())
    std = float(x.std())
    if std < FLAT_SIGNAL_STD:
        return Unavailable('flat signal')

    peaks = detect_peaks(x, sample_rate, max_bpm)
    if peaks.size < 2:
        return Unavailable('too few peaks')

    intervals = np.diff(peaks) / sample_rate
    intervals = intervals[(intervals >= 60.0 / max_bpm) & (intervals <= 60.0 / min_bpm)]
    if intervals.size == 0:
        return Unavailable('no plausible intervals')

    bpm = int(round(60.0 / float(np.median(intervals))))
    if not min_bpm <= bpm <= max_bpm:
        return Unavailable(f'bpm {bpm} out of bounds')

    amplitude_factor = _clamp(std / max(1.0, abs(mean)))
    interval_factor = _clamp(intervals.size / 10.0)
    quality = 0.6 * amplitude_factor + 0.4 * interval_factor

    return HeartRateEstimate(bpm=bpm, quality=quality, source=source)


@dataclass(frozen=True)
class SpectralPlan:
    """
    Precomputed transform resources for one input length.

    Holds the analysis window, the zero-padded transform size and the
    spectrum bins covering the cardiac band.
    """
    signal_length: int
    fft_size: int
    window: np.ndarray
    min_bin: int
    max_bin: int
    resolution: float

    @classmethod
    def build(cls, signal_length: int, sample_rate: float, min_bpm: float, max_bpm: float) -> 'SpectralPlan':
        fft_size = 1 << int(np.ceil(np.log2(signal_length)))
        half = fft_size // 2
        resolution = sample_rate / fft_size

        min_bin = max(1, int(np.ceil((min_bpm / 60.0) / resolution)))
        max_bin = min(half - 1, int(np.floor((max_bpm / 60.0) / resolution)))

        return cls(
            signal_length=signal_length,
            fft_size=fft_size,
            window=windows.hann(signal_length, sym=False),
            min_bin=min_bin,
            max_bin=max_bin,
            resolution=resolution,
        )


class SpectralHeartRateEstimator:
    """
    Dominant-frequency heart rate from a Hann-windowed, zero-padded FFT.

    The plan for the current input length is memoized and rebuilt only when
    the length changes.
    """

    def __init__(self, sample_rate: float, min_bpm: float, max_bpm: float):
        self.sample_rate = sample_rate
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm

        self._plan: Optional[SpectralPlan] = None
        self.plan_builds = 0

    def _get_plan(self, signal_length: int) -> Optional[SpectralPlan]:
        if self._plan is not None and self._plan.signal_length == signal_length:
            return self._plan

        try:
            self._plan = SpectralPlan.build(signal_length, self.sample_rate, self.min_bpm, self.max_bpm)
        except (MemoryError, ValueError) as e:
            logger.warning(f"Could not build spectral plan for {signal_length} samples: {e}")
            self._plan = None
            return None

        self.plan_builds += 1
        logger.debug(f"Spectral plan built: {signal_length} samples -> {self._plan.fft_size}-point FFT")
        return self._plan

    def estimate(self, signal, source: HRSource = HRSource.FFT) -> HeartRate:
        """
        Estimate heart rate from the spectrum of one window.

        Args:
            signal: Filtered PPG window (at least 128 samples)
            source: Tag for the returned estimate

        Returns:
            HeartRateEstimate, or Unavailable.
        """
        x = np.asarray(signal, dtype=np.float64)
        if x.size < MIN_SPECTRAL_SAMPLES:
            return Unavailable('window too short for FFT')

        plan = self._get_plan(x.size)
        if plan is None:
            return Unavailable('spectral plan unavailable')
        if plan.min_bin >= plan.max_bin:
            return Unavailable('cardiac band narrower than one bin')

        windowed = (x - x.mean()) * plan.window
        magnitudes = np.abs(sp_fft.rfft(windowed, n=plan.fft_size))

        band = magnitudes[plan.min_bin:plan.max_bin + 1]
        peak_bin = plan.min_bin + int(np.argmax(band))
        peak = float(magnitudes[peak_bin])
        if peak <= 0.0:
            return Unavailable('empty spectrum')

        # Parabolic interpolation across the neighbours for sub-bin accuracy
        refined_bin = float(peak_bin)
        if plan.min_bin < peak_bin < plan.max_bin:
            alpha, beta, gamma = magnitudes[peak_bin - 1], peak, magnitudes[peak_bin + 1]
            denominator = alpha - 2.0 * beta + gamma
            if abs(denominator) > 1e-10:
                refined_bin += 0.5 * (alpha - gamma) / denominator

        bpm = int(round(refined_bin * plan.resolution * 60.0))
        if not self.min_bpm <= bpm <= self.max_bpm:
            return Unavailable(f'bpm {bpm} out of bounds')

        average = float(band.mean())
        snr = peak / average if average > 0 else 0.0
        quality = _clamp((snr - 1.0) / 4.0)

        return HeartRateEstimate(bpm=bpm, quality=quality, source=source)

    def release(self):
        """Drop the cached plan."""
        self._plan = None


class HeartRateEstimator:
    """
    Channel and method selection for heart rate.

    IR peak detection first; a passing estimate is cross-checked against the
    spectrum of the same channel and replaced by it on large disagreement.
    Green is tried the same way next, then the spectral estimate alone on IR
    and green under a relaxed quality gate.
    """

    def __init__(self, sample_rate: float, min_bpm: float, max_bpm: float, min_quality: float,
                 spectral: Optional[SpectralHeartRateEstimator] = None):
        """
        Args:
            sample_rate: Sampling rate in Hz
            min_bpm:     Lower physiological bound
            max_bpm:     Upper physiological bound
            min_quality: Quality gate for peak-detection estimates
            spectral:    Shared spectral estimator (one is created if omitted)
        """
        self.sample_rate = sample_rate
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm
        self.min_quality = min_quality
        self.spectral = spectral or SpectralHeartRateEstimator(sample_rate, min_bpm, max_bpm)

    def _cross_validated(self, signal: np.ndarray, source: HRSource) -> Optional[HeartRateEstimate]:
        peak_estimate = estimate_peak_heart_rate(signal, self.sample_rate, self.min_bpm, self.max_bpm, source)
        if not isinstance(peak_estimate, HeartRateEstimate) or peak_estimate.quality < self.min_quality:
            return None

        spectral_estimate = self.spectral.estimate(signal)
        if (isinstance(spectral_estimate, HeartRateEstimate)
                and abs(peak_estimate.bpm - spectral_estimate.bpm) > CROSS_VALIDATION_TOLERANCE_BPM):
            logger.debug(
                f"HR: FFT cross-validation override ({source.value}) - "
                f"peak={peak_estimate.bpm} fft={spectral_estimate.bpm}, using FFT"
            )
            return HeartRateEstimate(
                bpm=spectral_estimate.bpm,
                quality=peak_estimate.quality * FFT_OVERRIDE_QUALITY_FACTOR,
                source=HRSource.FFT,
            )
        return peak_estimate

    def estimate(self, ir, green) -> HeartRate:
        """
        Select the best available heart-rate estimate.

        Args:
            ir:    Filtered IR window
            green: Filtered green window

        Returns:
            HeartRateEstimate tagged with its source, or Unavailable.
        """
        ir = np.asarray(ir, dtype=np.float64)
        green = np.asarray(green, dtype=np.float64)

        for signal, source in ((ir, HRSource.IR), (green, HRSource.GREEN)):
            estimate = self._cross_validated(signal, source)
            if estimate is not None:
                return estimate

        fallback_gate = self.min_quality * SPECTRAL_FALLBACK_QUALITY_FACTOR
        for signal, channel in ((ir, 'IR'), (green, 'green')):
            estimate = self.spectral.estimate(signal)
            if isinstance(estimate, HeartRateEstimate) and estimate.quality >= fallback_gate:
                logger.debug(f"HR: FFT fallback on {channel} - bpm={estimate.bpm} quality={estimate.quality:.2f}")
                return estimate

        return Unavailable('no channel passed the quality gate')
