"""
SpO2 Estimation
Ratio-of-ratios between red and IR AC/DC with an empirical calibration curve
"""

import numpy as np

from oralable_system.results import SpO2, SpO2Estimate, Unavailable


R_MIN = 0.4
R_MAX = 3.4

# SpO2 = A*R^2 + B*R + C
CALIBRATION_A = -45.060
CALIBRATION_B = 30.354
CALIBRATION_C = 94.845

# AC/DC ratio at which quality saturates
FULL_QUALITY_RATIO = 0.1


def spo2_from_ratio(r_value: float) -> float:
    """Empirical calibration polynomial, no bounds applied."""
    return CALIBRATION_A * r_value ** 2 + CALIBRATION_B * r_value + CALIBRATION_C


def estimate_spo2(red, ir, min_spo2: float, max_spo2: float) -> SpO2:
    """
    Ratio-of-ratios SpO2 over matching red and IR windows.

    AC is the window peak-to-peak, DC the window mean.

    Args:
        red:      Red channel window
        ir:       IR channel window (DC-carrying)
        min_spo2: Lowest reportable saturation (%)
        max_spo2: Highest reportable saturation (%)

    Returns:
        SpO2Estimate rounded to one decimal, or Unavailable.
    """
    red = np.asarray(red, dtype=np.float64)
    ir = np.asarray(ir, dtype=np.float64)
    if red.size == 0 or ir.size == 0:
        return Unavailable('empty window')

    dc_red = float(red.mean())
    dc_ir = float(ir.mean())
    if dc_red <= 0 or dc_ir <= 0:
        return Unavailable('non-positive DC')

    ac_red = float(np.ptp(red))
    ac_ir = float(np.ptp(ir))
    if ac_red <= 0 or ac_ir <= 0:
        return Unavailable('no pulsatile component')

    ratio_red = ac_red / dc_red
    ratio_ir = ac_ir / dc_ir
    r_value = ratio_red / ratio_ir

    # R < 0.4 maps above 100 %, R > 3.4 below 0 %
    if not R_MIN <= r_value <= R_MAX:
        return Unavailable(f'R={r_value:.3f} implausible')

    spo2 = spo2_from_ratio(r_value)
    if not min_spo2 <= spo2 <= max_spo2:
        return Unavailable(f'SpO2 {spo2:.1f} out of bounds')

    quality = max(0.0, min(1.0, ((ratio_red + ratio_ir) / 2.0) / FULL_QUALITY_RATIO))
    return SpO2Estimate(percentage=round(spo2, 1), quality=quality)
