"""
Jaw Activity Classification
Relaxed / clenching / grinding / motion from IR deviation and accelerometer magnitude
"""

import numpy as np

from oralable_system.buffers import CircularBuffer
from oralable_system.results import ActivityType


class ActivityClassifier:
    """
    Per-sample activity classifier.

    Muscle contraction under the sensor occludes tissue and shifts the IR
    level away from its relaxed baseline; sustained shifts with little
    variance read as clenching, oscillating ones as grinding. Head or body
    movement is detected from accelerometer magnitude before anything else.
    """

    def __init__(
        self,
        history_size: int = 32,
        motion_threshold: float = 1.15,
        deviation_threshold: float = 5000.0,
        grinding_variance_threshold: float = 1000.0,
        baseline_decay: float = 0.05,
    ):
        """
        Args:
            history_size:                IR samples kept for the variance check
            motion_threshold:            Accelerometer magnitude (g) treated as motion
            deviation_threshold:         IR deviation from baseline (ADC units) for activity
            grinding_variance_threshold: IR variance separating grinding from clenching
            baseline_decay:              EMA weight of new samples while relaxed
        """
        self.motion_threshold = motion_threshold
        self.deviation_threshold = deviation_threshold
        self.grinding_variance_threshold = grinding_variance_threshold
        self.baseline_decay = baseline_decay

        self._ir_history = CircularBuffer(history_size)
        self.baseline = 0.0
        self._baseline_initialized = False

    def classify(self, ir: float, acc_magnitude: float) -> ActivityType:
        """
        Classify one sample.

        Args:
            ir:            IR sample (ADC units)
            acc_magnitude: Accelerometer vector magnitude in g (1.0 = at rest)

        Returns:
            ActivityType for this sample.
        """
        if not self._baseline_initialized:
            self.baseline = ir
            self._baseline_initialized = True

        self._ir_history.append(ir)

        if acc_magnitude > self.motion_threshold:
            return ActivityType.MOTION

        deviation = abs(ir - self.baseline)
        if deviation > self.deviation_threshold:
            variance = float(np.var(self._ir_history.to_array()))
            if variance > self.grinding_variance_threshold:
                return ActivityType.GRINDING
            return ActivityType.CLENCHING

        # Track slow drift only while relaxed
        self.baseline = (1.0 - self.baseline_decay) * self.baseline + self.baseline_decay * ir
        return ActivityType.RELAXED

    def reset(self):
        self._ir_history.clear()
        self.baseline = 0.0
        self._baseline_initialized = False
