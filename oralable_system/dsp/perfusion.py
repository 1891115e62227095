"""
Perfusion Index and Worn Detection
AC/DC contact-quality measure and the derived on-skin judgment
"""

import numpy as np

from oralable_system.results import HeartRate, HeartRateEstimate, SignalStrength


def perfusion_index(signal) -> float:
    """
    Peak-to-peak over mean of a DC-carrying window.

    Returns:
        Perfusion index as a ratio (0.01 = 1 %); 0 for an empty window or
        non-positive mean.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size == 0:
        return 0.0

    dc = float(x.mean())
    if dc <= 0:
        return 0.0
    return float(np.ptp(x)) / dc


def signal_strength(pi: float) -> SignalStrength:
    return SignalStrength.from_perfusion_index(pi)


def is_worn(pi: float, heart_rate: HeartRate, min_perfusion_index: float, min_hr_quality: float) -> bool:
    """
    On-skin inference from a believable pulsatile reading.

    There is no dedicated contact sensor: the device counts as worn only when
    perfusion is above the floor and a heart rate of sufficient quality exists.
    """
    if pi <= min_perfusion_index:
        return False
    if not isinstance(heart_rate, HeartRateEstimate):
        return False
    return heart_rate.bpm > 0 and heart_rate.quality > min_hr_quality
