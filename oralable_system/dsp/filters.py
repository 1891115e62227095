"""
Band-limiting Filters
Per-sample recursive band-pass for the live path and Butterworth IIR
sections for offline / batch feature extraction
"""

from typing import Optional

import numpy as np
from scipy import signal


class RecursiveBandpass:
    """
    First-order high-pass followed by first-order low-pass.

    hp = alpha_hp * (hp + x - x_prev)
    lp = lp + alpha_lp * (hp - lp)

    With the default coefficients at 50 Hz this approximates the cardiac band
    at a cost of a handful of multiplies per sample.
    """

    def __init__(self, alpha_hp: float = 0.05, alpha_lp: float = 0.15):
        self.alpha_hp = alpha_hp
        self.alpha_lp = alpha_lp

        self._high_pass = 0.0
        self._low_pass = 0.0
        self._previous: Optional[float] = None

    def update(self, x: float) -> float:
        """
        Filter one sample.

        The first sample after a reset is its own predecessor, so a DC step
        into an idle filter produces no transient.
        """
        previous = x if self._previous is None else self._previous
        self._high_pass = self.alpha_hp * (self._high_pass + x - previous)
        self._low_pass = self._low_pass + self.alpha_lp * (self._high_pass - self._low_pass)
        self._previous = x
        return self._low_pass

    def reset(self):
        self._high_pass = 0.0
        self._low_pass = 0.0
        self._previous = None


class ButterworthFilter:
    """
    Butterworth IIR filter realized as Direct-Form-II-Transposed
    second-order sections.

    Coefficients come from the bilinear transform of the analog Butterworth
    prototype. The default order of 2 yields a single biquad for low-pass and
    high-pass; a band-pass of order 2 is likewise one section (1st-order
    prototype shifted to the pass band).

    Streaming calls (process_sample / process) carry section state between
    calls. filtfilt is stateless and zero-phase.
    """

    KINDS = ('lowpass', 'highpass', 'bandpass')

    def __init__(
        self,
        kind: str,
        cutoff_low: float,
        sample_rate: float,
        cutoff_high: Optional[float] = None,
        order: int = 2,
    ):
        """
        Args:
            kind:        'lowpass', 'highpass' or 'bandpass'
            cutoff_low:  Cutoff frequency in Hz (lower edge for band-pass)
            sample_rate: Sampling rate in Hz
            cutoff_high: Upper band edge in Hz, band-pass only
            order:       Overall filter order; must be even for band-pass
        """
        if kind not in self.KINDS:
            raise ValueError(f"Unknown filter kind: {kind}")
        if kind == 'bandpass' and cutoff_high is None:
            raise ValueError("Band-pass filter requires cutoff_high")
        if kind == 'bandpass' and order % 2:
            raise ValueError(f"Band-pass order must be even, got {order}")

        self.kind = kind
        self.cutoff_low = cutoff_low
        self.cutoff_high = cutoff_high
        self.sample_rate = sample_rate
        self.order = order

        if kind == 'bandpass':
            self.sos = signal.butter(order // 2, [cutoff_low, cutoff_high], 'bandpass',
                                     fs=sample_rate, output='sos')
        else:
            self.sos = signal.butter(order, cutoff_low, kind, fs=sample_rate, output='sos')

        self._zi = np.zeros((self.sos.shape[0], 2))

    def process(self, samples) -> np.ndarray:
        """
        Causally filter a block, continuing from the current state.

        Args:
            samples: 1-D array-like of input samples

        Returns:
            Filtered samples as a float array.
        """
        x = np.asarray(samples, dtype=np.float64)
        if x.size == 0:
            return x
        y, self._zi = signal.sosfilt(self.sos, x, zi=self._zi)
        return y

    def process_sample(self, x: float) -> float:
        return float(self.process(np.array([x]))[0])

    def filtfilt(self, samples) -> np.ndarray:
        """
        Zero-phase filtering: forward pass, reverse, forward pass, reverse.

        Each pass starts from the steady state of its first sample, so a
        DC-carrying input has no edge transient. The streaming state is left
        untouched. Inputs of 3 samples or fewer are returned unchanged.

        Args:
            samples: 1-D array-like of input samples

        Returns:
            Filtered samples, same length as the input.
        """
        x = np.asarray(samples, dtype=np.float64)
        if x.size <= 3:
            return x.copy()

        zi = signal.sosfilt_zi(self.sos)
        forward, _ = signal.sosfilt(self.sos, x, zi=zi * x[0])
        reversed_forward = forward[::-1]
        backward, _ = signal.sosfilt(self.sos, reversed_forward, zi=zi * reversed_forward[0])
        return backward[::-1].copy()

    def reset(self):
        self._zi = np.zeros((self.sos.shape[0], 2))

    def __repr__(self):
        band = f"{self.cutoff_low}-{self.cutoff_high}" if self.kind == 'bandpass' else f"{self.cutoff_low}"
        return f"<ButterworthFilter({self.kind}, {band} Hz, order={self.order})>"
