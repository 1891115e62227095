import numpy as np
import pytest

from oralable_system.dsp.heart_rate import (
    HeartRateEstimator,
    SpectralHeartRateEstimator,
    detect_peaks,
    estimate_peak_heart_rate,
)
from oralable_system.results import HeartRateEstimate, HRSource, Unavailable

from conftest import sine

RATE = 50.0


def test_peak_estimate_recovers_72_bpm():
    estimate = estimate_peak_heart_rate(sine(72, RATE, 150, amplitude=100.0), RATE, 40, 180)

    assert isinstance(estimate, HeartRateEstimate)
    assert abs(estimate.bpm - 72) <= 1
    assert estimate.quality > 0.5
    assert estimate.source == HRSource.IR


def test_flat_signal_unavailable():
    estimate = estimate_peak_heart_rate(np.full(150, 3.0), RATE, 40, 180)
    assert isinstance(estimate, Unavailable)
    assert not estimate


def test_rate_outside_bounds_unavailable():
    # 30 BPM: every interval is longer than 60 / min_bpm
    estimate = estimate_peak_heart_rate(sine(30, RATE, 500, amplitude=100.0), RATE, 40, 180)
    assert isinstance(estimate, Unavailable)


def test_refractory_period_suppresses_close_peaks():
    x = np.zeros(80)
    x[[10, 15, 50]] = 100.0

    # 60 / 180 BPM = 0.33 s = 16.7 samples at 50 Hz
    assert detect_peaks(x, RATE, max_bpm=180).tolist() == [10, 50]


def test_spectral_estimate_within_tolerance():
    spectral = SpectralHeartRateEstimator(RATE, 40, 180)
    estimate = spectral.estimate(sine(72, RATE, 300, amplitude=100.0))

    assert isinstance(estimate, HeartRateEstimate)
    assert abs(estimate.bpm - 72) <= 3
    assert estimate.source == HRSource.FFT
    assert estimate.quality > 0.5


def test_spectral_estimate_on_three_second_window():
    spectral = SpectralHeartRateEstimator(RATE, 40, 180)
    estimate = spectral.estimate(sine(72, RATE, 150, amplitude=100.0))

    assert abs(estimate.bpm - 72) <= 2


def test_spectral_needs_128_samples():
    spectral = SpectralHeartRateEstimator(RATE, 40, 180)
    assert isinstance(spectral.estimate(sine(72, RATE, 127, amplitude=100.0)), Unavailable)


def test_spectral_plan_reused_for_same_length():
    spectral = SpectralHeartRateEstimator(RATE, 40, 180)
    spectral.estimate(sine(72, RATE, 150, amplitude=100.0))
    spectral.estimate(sine(90, RATE, 150, amplitude=100.0))
    assert spectral.plan_builds == 1

    spectral.estimate(sine(72, RATE, 200, amplitude=100.0))
    assert spectral.plan_builds == 2

    spectral.release()
    spectral.estimate(sine(72, RATE, 200, amplitude=100.0))
    assert spectral.plan_builds == 3


def test_spectral_plan_failure_skips_spectral_path(monkeypatch):
    from oralable_system.dsp import heart_rate

    def fail(*args, **kwargs):
        raise MemoryError('no memory')

    monkeypatch.setattr(heart_rate.SpectralPlan, 'build', fail)
    spectral = SpectralHeartRateEstimator(RATE, 40, 180)

    assert isinstance(spectral.estimate(sine(72, RATE, 150, amplitude=100.0)), Unavailable)


def test_selection_prefers_ir():
    estimator = HeartRateEstimator(RATE, 40, 180, min_quality=0.5)
    signal = sine(72, RATE, 150, amplitude=100.0)

    estimate = estimator.estimate(signal, signal)
    assert estimate.source == HRSource.IR


def test_selection_falls_back_to_green():
    estimator = HeartRateEstimator(RATE, 40, 180, min_quality=0.5)

    estimate = estimator.estimate(np.zeros(150), sine(72, RATE, 150, amplitude=100.0))
    assert estimate.source == HRSource.GREEN
    assert abs(estimate.bpm - 72) <= 1


def test_selection_falls_back_to_spectral():
    # Peak quality for a 6 s window is ~0.85, below this gate
    estimator = HeartRateEstimator(RATE, 40, 180, min_quality=0.95)

    estimate = estimator.estimate(sine(72, RATE, 300, amplitude=100.0), np.zeros(300))
    assert estimate.source == HRSource.FFT
    assert abs(estimate.bpm - 72) <= 6


def test_nothing_passes_gate():
    estimator = HeartRateEstimator(RATE, 40, 180, min_quality=0.5)
    assert isinstance(estimator.estimate(np.zeros(150), np.zeros(150)), Unavailable)


class FixedSpectral:
    def __init__(self, bpm):
        self.bpm = bpm

    def estimate(self, signal, source=HRSource.FFT):
        return HeartRateEstimate(bpm=self.bpm, quality=0.9, source=source)


def test_spectral_disagreement_overrides_peak_estimate():
    signal = sine(72, RATE, 150, amplitude=100.0)
    peak = estimate_peak_heart_rate(signal, RATE, 40, 180)

    estimator = HeartRateEstimator(RATE, 40, 180, min_quality=0.5, spectral=FixedSpectral(120))
    estimate = estimator.estimate(signal, signal)

    assert estimate.source == HRSource.FFT
    assert estimate.bpm == 120
    assert estimate.quality == pytest.approx(peak.quality * 0.8)


def test_spectral_agreement_keeps_peak_estimate():
    signal = sine(72, RATE, 150, amplitude=100.0)

    estimator = HeartRateEstimator(RATE, 40, 180, min_quality=0.5, spectral=FixedSpectral(80))
    assert estimator.estimate(signal, signal).source == HRSource.IR
