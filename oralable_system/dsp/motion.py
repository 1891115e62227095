"""
Motion Artifact Compensation
Adaptive LMS filter removing accelerometer-correlated noise from PPG channels
"""

import numpy as np


class MotionCompensator:
    """
    Least-Mean-Squares adaptive noise canceller.

    The optical sensor sits on moving tissue, so the accelerometer deviation
    from 1 g is used as the noise reference. The filter learns the
    reference-to-artifact transfer function online and subtracts its estimate.

    The noise history is a ring buffer; index 0 of the logical history is the
    newest reference sample and is paired with weights[0].
    """

    def __init__(self, order: int = 32, learning_rate: float = 0.01,
                 variance_threshold: float = 2.0, shock_attenuation: float = 0.1):
        """
        Args:
            order:              Number of filter taps / history length
            learning_rate:      LMS step size (mu)
            variance_threshold: Reference variance above which output is attenuated
            shock_attenuation:  Output gain applied during high-shock motion
        """
        self.order = order
        self.learning_rate = learning_rate
        self.variance_threshold = variance_threshold
        self.shock_attenuation = shock_attenuation

        self.weights = np.zeros(order)
        self._history = np.zeros(order)
        self._head = 0  # slot holding the newest reference
        self._ages = np.arange(order)

    def noise_history(self) -> np.ndarray:
        """Reference history newest-first."""
        return self._history[(self._head - self._ages) % self.order]

    def filter(self, signal: float, noise_reference: float) -> float:
        """
        Subtract the adaptive noise estimate from one sample.

        Args:
            signal:          Primary sample (physiology + artifact)
            noise_reference: Reference sample correlated with the artifact

        Returns:
            Cleaned sample, attenuated when the reference is shock-like.
        """
        self._head = (self._head + 1) % self.order
        self._history[self._head] = noise_reference

        history = self.noise_history()
        estimated_noise = float(np.dot(self.weights, history))
        cleaned = signal - estimated_noise

        self.weights += self.learning_rate * cleaned * history

        if float(np.var(history)) > self.variance_threshold:
            return cleaned * self.shock_attenuation
        return cleaned

    def reset(self):
        """Zero the weights and history (new session or re-attachment)."""
        self.weights.fill(0.0)
        self._history.fill(0.0)
        self._head = 0
