"""
Recorded Session Loading and Replay
CSV exports and raw binary captures into numpy arrays for batch processing
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from oralable_system.dsp.features import SessionFeatures, extract_session_features
from oralable_system.protocol.parser import COMBINED_SAMPLE_SIZE
from oralable_system.results import BiometricResult
from oralable_system.sensors.oralable.config import BiometricConfiguration
from oralable_system.sensors.oralable.processor import BiometricProcessor

logger = logging.getLogger(__name__)


TIMESTAMP_COLUMN = 'Timestamp'
REQUIRED_COLUMNS = (TIMESTAMP_COLUMN, 'PPG_IR')

# Packed little-endian layout of one combined sample
COMBINED_SAMPLE_DTYPE = np.dtype([
    ('red', '<i4'), ('ir', '<i4'), ('green', '<i4'),
    ('accel_x', '<i2'), ('accel_y', '<i2'), ('accel_z', '<i2'),
])

# CSV column -> recording field
CHANNEL_COLUMNS = {
    'PPG_IR': 'ir',
    'PPG_Red': 'red',
    'PPG_Green': 'green',
    'Accel_X': 'accel_x',
    'Accel_Y': 'accel_y',
    'Accel_Z': 'accel_z',
}


@dataclass
class SessionRecording:
    """One recorded session as equal-length channel arrays."""
    ir: np.ndarray
    red: np.ndarray
    green: np.ndarray
    accel_x: np.ndarray
    accel_y: np.ndarray
    accel_z: np.ndarray
    timestamps: Optional[np.ndarray] = None  # datetime64[ns] in UTC; None for binary captures
    source: str = ''

    def __len__(self) -> int:
        return len(self.ir)

    @property
    def estimated_sample_rate(self) -> Optional[float]:
        """Sample rate from the median timestamp spacing, if timestamps exist."""
        if self.timestamps is None or len(self.timestamps) < 2:
            return None
        spacing = np.diff(self.timestamps).astype('timedelta64[ns]').astype(np.int64) / 1e9
        spacing = spacing[spacing > 0]
        if spacing.size == 0:
            return None
        return 1.0 / float(np.median(spacing))

    def channels(self) -> tuple:
        """(ir, red, green, accel_x, accel_y, accel_z) in processor argument order."""
        return self.ir, self.red, self.green, self.accel_x, self.accel_y, self.accel_z


def load_session_csv(path: Union[str, Path], accel_lsb_per_g: float = 16384.0) -> SessionRecording:
    """
    Load a session CSV export.

    Rows whose timestamp cannot be parsed are skipped. Optical columns that
    are absent or non-numeric read as 0; absent accelerometer columns read as
    a stationary device (0, 0, +1 g). Extra columns are ignored.

    Args:
        path:            CSV file path
        accel_lsb_per_g: Accelerometer scale used for the stationary default

    Returns:
        SessionRecording

    Raises:
        ValueError: if a required column is missing.
    """
    frame = pd.read_csv(path, skipinitialspace=True)
    frame.columns = [str(c).strip() for c in frame.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"{path}: missing required column(s) {', '.join(missing)}")

    timestamps = pd.to_datetime(frame[TIMESTAMP_COLUMN], errors='coerce', utc=True, format='mixed')
    valid = timestamps.notna()
    skipped = int((~valid).sum())
    if skipped:
        logger.warning(f"Skipping {skipped} row(s) with unparseable timestamps in {path}")

    frame = frame.loc[valid]
    defaults = {'accel_z': accel_lsb_per_g}

    values = {}
    for column, field in CHANNEL_COLUMNS.items():
        if column in frame.columns:
            values[field] = pd.to_numeric(frame[column], errors='coerce').fillna(0.0).to_numpy(dtype=np.float64)
        else:
            values[field] = np.full(len(frame), defaults.get(field, 0.0))

    recording = SessionRecording(
        timestamps=timestamps[valid].dt.tz_convert(None).to_numpy(),
        source=str(path),
        **values,
    )
    logger.info(f"✓ Loaded {len(recording)} samples from {path}")
    return recording


def load_binary_capture(path: Union[str, Path]) -> SessionRecording:
    """
    Load a file of concatenated 18-byte combined samples.

    A trailing partial sample is ignored.

    Args:
        path: Capture file path

    Returns:
        SessionRecording without timestamps
    """
    data = Path(path).read_bytes()
    count, remainder = divmod(len(data), COMBINED_SAMPLE_SIZE)
    if remainder:
        logger.warning(f"Ignoring {remainder} trailing byte(s) in {path}")

    samples = np.frombuffer(data, dtype=COMBINED_SAMPLE_DTYPE, count=count)

    recording = SessionRecording(
        **{name: samples[name].astype(np.float64) for name in COMBINED_SAMPLE_DTYPE.names},
        source=str(path),
    )
    logger.info(f"✓ Loaded {count} samples from binary capture {path}")
    return recording


def replay_session(recording: SessionRecording, processor: BiometricProcessor) -> BiometricResult:
    """Run a recording through process_batch and return the final result."""
    logger.info(f"Replaying {len(recording)} samples from {recording.source or 'recording'}")
    return processor.process_batch(*recording.channels())


def recording_features(recording: SessionRecording,
                       config: Optional[BiometricConfiguration] = None) -> SessionFeatures:
    """Offline whole-recording features at the configured sample rate."""
    config = config if config else BiometricConfiguration.oralable()
    return extract_session_features(recording.ir, recording.green, config.sample_rate)
