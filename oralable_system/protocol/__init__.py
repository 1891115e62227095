"""
Oralable Wire Protocol
Binary packet decoding and frame-counter validation

- parser: PPG / accelerometer / temperature / battery / combined packets
- frames: per-stream packet-loss and arrival-rate tracking
"""

from .parser import (
    PPGSample,
    AccelSample,
    RawSample,
    Frame,
    extract_frame_counter,
    parse_ppg_samples,
    parse_ppg_packet,
    parse_accelerometer_samples,
    parse_accelerometer_packet,
    parse_temperature_packet,
    parse_battery_millivolts,
    parse_battery_percentage,
    battery_percentage,
    parse_combined_sample,
)
from .frames import FrameCounterTracker

__all__ = [
    'PPGSample',
    'AccelSample',
    'RawSample',
    'Frame',
    'extract_frame_counter',
    'parse_ppg_samples',
    'parse_ppg_packet',
    'parse_accelerometer_samples',
    'parse_accelerometer_packet',
    'parse_temperature_packet',
    'parse_battery_millivolts',
    'parse_battery_percentage',
    'battery_percentage',
    'parse_combined_sample',
    'FrameCounterTracker',
]
