"""
Oralable BLE Packet Parser
Decodes raw notification payloads into typed PPG, accelerometer,
temperature and battery readings

Wire layout (all little-endian, raw ADC units):
- PPG packet:    4-byte frame counter + N x 12 bytes (red u32, ir u32, green u32)
- Accel packet:  4-byte frame counter + N x 6 bytes (x, y, z int16)
- Temperature:   4-byte frame counter + int16 centidegrees Celsius
- Battery:       int32 millivolts
- Combined:      18 bytes = one PPG sample + one accel sample, no counter

Every parse function returns None for a buffer too short to hold one header
plus one sample. Trailing bytes shorter than a whole sample are dropped.
"""

import logging
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


FRAME_COUNTER_SIZE = 4
PPG_SAMPLE_SIZE = 12
ACCEL_SAMPLE_SIZE = 6
TEMPERATURE_SIZE = 2
BATTERY_SIZE = 4
COMBINED_SAMPLE_SIZE = PPG_SAMPLE_SIZE + ACCEL_SAMPLE_SIZE

# Channel order in firmware: red @0, ir @4, green @8. Unsigned on the wire,
# reinterpreted as signed 32-bit.
_PPG_STRUCT = struct.Struct('<iii')
_ACCEL_STRUCT = struct.Struct('<hhh')
_COMBINED_STRUCT = struct.Struct('<iiihhh')
_COUNTER_STRUCT = struct.Struct('<I')
_TEMPERATURE_STRUCT = struct.Struct('<h')
_BATTERY_STRUCT = struct.Struct('<i')

BATTERY_MIN_MV = 2500
BATTERY_MAX_MV = 4500
BATTERY_EMPTY_MV = 3000
BATTERY_FULL_MV = 4200


@dataclass(frozen=True)
class PPGSample:
    """One optical sample (ADC counts)."""
    red: int
    ir: int
    green: int
    timestamp: datetime


@dataclass(frozen=True)
class AccelSample:
    """One accelerometer sample (device LSB, 16384 LSB = 1 g)."""
    x: int
    y: int
    z: int
    timestamp: datetime


@dataclass(frozen=True)
class RawSample:
    """Paired optical + accelerometer sample, the processor's unit of input."""
    red: int
    ir: int
    green: int
    accel_x: int
    accel_y: int
    accel_z: int
    timestamp: datetime

    @classmethod
    def from_parts(cls, ppg: PPGSample, accel: AccelSample) -> 'RawSample':
        return cls(
            red=ppg.red,
            ir=ppg.ir,
            green=ppg.green,
            accel_x=accel.x,
            accel_y=accel.y,
            accel_z=accel.z,
            timestamp=ppg.timestamp,
        )


@dataclass(frozen=True)
class Frame:
    """A decoded wire packet: sequence counter plus its samples."""
    frame_counter: int
    samples: tuple


def _now(timestamp: Optional[datetime]) -> datetime:
    return timestamp if timestamp is not None else datetime.now(timezone.utc)


def extract_frame_counter(data: bytes) -> Optional[int]:
    """
    Read the 32-bit little-endian frame counter prefix.

    Args:
        data: Raw packet bytes

    Returns:
        Frame counter, or None if fewer than 4 bytes.
    """
    if len(data) < FRAME_COUNTER_SIZE:
        return None
    return _COUNTER_STRUCT.unpack_from(data, 0)[0]


def parse_ppg_samples(data: bytes, timestamp: Optional[datetime] = None) -> Optional[List[PPGSample]]:
    """
    Parse header-less PPG payload (N x 12 bytes).

    Args:
        data:      Payload bytes
        timestamp: Timestamp stamped on every sample (defaults to now, UTC)

    Returns:
        List of PPGSample, or None if shorter than one sample.
    """
    if len(data) < PPG_SAMPLE_SIZE:
        return None

    ts = _now(timestamp)
    usable = (len(data) // PPG_SAMPLE_SIZE) * PPG_SAMPLE_SIZE
    view = memoryview(data)[:usable]

    return [
        PPGSample(red=red, ir=ir, green=green, timestamp=ts)
        for red, ir, green in _PPG_STRUCT.iter_unpack(view)
    ]


def parse_accelerometer_samples(data: bytes, timestamp: Optional[datetime] = None) -> Optional[List[AccelSample]]:
    """
    Parse header-less accelerometer payload (N x 6 bytes).

    Args:
        data:      Payload bytes
        timestamp: Timestamp stamped on every sample (defaults to now, UTC)

    Returns:
        List of AccelSample, or None if shorter than one sample.
    """
    if len(data) < ACCEL_SAMPLE_SIZE:
        return None

    ts = _now(timestamp)
    usable = (len(data) // ACCEL_SAMPLE_SIZE) * ACCEL_SAMPLE_SIZE
    view = memoryview(data)[:usable]

    return [
        AccelSample(x=x, y=y, z=z, timestamp=ts)
        for x, y, z in _ACCEL_STRUCT.iter_unpack(view)
    ]


def parse_ppg_packet(data: bytes, timestamp: Optional[datetime] = None) -> Optional[Frame]:
    """
    Parse a full PPG notification (frame counter + samples).

    Returns:
        Frame of PPGSample, or None if the packet is truncated.
    """
    if len(data) < FRAME_COUNTER_SIZE + PPG_SAMPLE_SIZE:
        return None

    samples = parse_ppg_samples(data[FRAME_COUNTER_SIZE:], timestamp)
    if samples is None:
        return None
    return Frame(frame_counter=extract_frame_counter(data), samples=tuple(samples))


def parse_accelerometer_packet(data: bytes, timestamp: Optional[datetime] = None) -> Optional[Frame]:
    """
    Parse a full accelerometer notification (frame counter + samples).

    Returns:
        Frame of AccelSample, or None if the packet is truncated.
    """
    if len(data) < FRAME_COUNTER_SIZE + ACCEL_SAMPLE_SIZE:
        return None

    samples = parse_accelerometer_samples(data[FRAME_COUNTER_SIZE:], timestamp)
    if samples is None:
        return None
    return Frame(frame_counter=extract_frame_counter(data), samples=tuple(samples))


def parse_temperature_packet(data: bytes) -> Optional[Tuple[int, float]]:
    """
    Parse a temperature notification.

    Returns:
        (frame_counter, degrees Celsius), or None if truncated.
    """
    if len(data) < FRAME_COUNTER_SIZE + TEMPERATURE_SIZE:
        return None

    centidegrees = _TEMPERATURE_STRUCT.unpack_from(data, FRAME_COUNTER_SIZE)[0]
    return extract_frame_counter(data), centidegrees / 100.0


def parse_battery_millivolts(data: bytes) -> Optional[int]:
    """
    Parse a battery notification.

    Returns:
        Millivolts, or None if truncated or outside [2500, 4500] mV.
    """
    if len(data) < BATTERY_SIZE:
        return None

    millivolts = _BATTERY_STRUCT.unpack_from(data, 0)[0]
    if not BATTERY_MIN_MV <= millivolts <= BATTERY_MAX_MV:
        logger.debug(f"Rejected battery reading: {millivolts} mV")
        return None
    return millivolts


def battery_percentage(millivolts: int) -> int:
    """Linear 3.0 V = 0 % .. 4.2 V = 100 % mapping, clamped."""
    span = BATTERY_FULL_MV - BATTERY_EMPTY_MV
    return int(min(100, max(0, (millivolts - BATTERY_EMPTY_MV) * 100 // span)))


def parse_battery_percentage(data: bytes) -> Optional[int]:
    """
    Parse a battery notification as a charge percentage.

    Returns:
        0-100, or None if the reading is invalid.
    """
    millivolts = parse_battery_millivolts(data)
    if millivolts is None:
        return None
    return battery_percentage(millivolts)


def parse_combined_sample(data: bytes, timestamp: Optional[datetime] = None) -> Optional[RawSample]:
    """
    Parse an 18-byte combined PPG + accelerometer sample.

    Returns:
        RawSample, or None if fewer than 18 bytes.
    """
    if len(data) < COMBINED_SAMPLE_SIZE:
        return None

    red, ir, green, x, y, z = _COMBINED_STRUCT.unpack_from(data, 0)
    return RawSample(
        red=red, ir=ir, green=green,
        accel_x=x, accel_y=y, accel_z=z,
        timestamp=_now(timestamp),
    )
