import struct

import numpy as np
import pytest

from oralable_system.protocol.parser import COMBINED_SAMPLE_SIZE, parse_combined_sample
from oralable_system.results import ProcessingMethod
from oralable_system.sensors.oralable.config import BiometricConfiguration
from oralable_system.sensors.oralable.processor import BiometricProcessor
from oralable_system.session import (
    COMBINED_SAMPLE_DTYPE,
    SessionRecording,
    load_binary_capture,
    load_session_csv,
    recording_features,
    replay_session,
)

from conftest import ONE_G, combined_sample, ppg_channels


def write_csv(path, count, bad_rows=(), with_accel=True):
    ir, red, green, _, _, _ = ppg_channels(count)
    header = 'Timestamp,Device_Type,PPG_IR,PPG_Red,PPG_Green'
    if with_accel:
        header += ',Accel_X,Accel_Y,Accel_Z'
    lines = [header]
    for i in range(count):
        stamp = 'not-a-time' if i in bad_rows else f'2025-03-01T10:00:{i * 0.02:06.3f}Z'
        row = f'{stamp},Oralable,{ir[i]:.0f},{red[i]:.0f},{green[i]:.0f}'
        if with_accel:
            row += f',0,0,{ONE_G}'
        lines.append(row)
    path.write_text('\n'.join(lines) + '\n')
    return path


def test_load_csv(tmp_path):
    recording = load_session_csv(write_csv(tmp_path / 'session.csv', 50))

    assert len(recording) == 50
    assert recording.ir[0] == pytest.approx(100000.0)
    assert recording.accel_z[0] == ONE_G
    assert recording.estimated_sample_rate == pytest.approx(50.0, rel=0.01)


def test_unparseable_timestamps_skipped(tmp_path):
    recording = load_session_csv(write_csv(tmp_path / 'session.csv', 20, bad_rows={3, 7}))
    assert len(recording) == 18


def test_missing_accel_columns_read_as_stationary(tmp_path):
    recording = load_session_csv(write_csv(tmp_path / 'session.csv', 10, with_accel=False))

    assert not recording.accel_x.any()
    assert (recording.accel_z == ONE_G).all()


def test_missing_required_column_raises(tmp_path):
    path = tmp_path / 'bad.csv'
    path.write_text('Timestamp,PPG_Red\n2025-03-01T10:00:00Z,1\n')

    with pytest.raises(ValueError):
        load_session_csv(path)


def test_load_binary_capture(tmp_path):
    path = tmp_path / 'capture.bin'
    data = b''.join(combined_sample(80000 + i, 100000 + i, 50000, 0, 0, ONE_G) for i in range(10))
    path.write_bytes(data + b'\x00' * 5)

    recording = load_binary_capture(path)

    assert len(recording) == 10
    assert recording.ir[9] == 100009
    assert recording.red[0] == 80000
    assert recording.timestamps is None
    assert recording.estimated_sample_rate is None


def test_binary_capture_matches_combined_sample_decoder(tmp_path):
    rows = [(-5, 100000, 2 ** 31 - 1, -ONE_G, 123, ONE_G), (80000, -1, 0, 32767, -32768, 0)]
    data = b''.join(combined_sample(*row) for row in rows)
    path = tmp_path / 'signed.bin'
    path.write_bytes(data)

    recording = load_binary_capture(path)

    assert COMBINED_SAMPLE_DTYPE.itemsize == COMBINED_SAMPLE_SIZE
    assert recording.ir.dtype == np.float64
    for i in range(len(rows)):
        sample = parse_combined_sample(data[i * COMBINED_SAMPLE_SIZE:(i + 1) * COMBINED_SAMPLE_SIZE])
        assert recording.red[i] == sample.red
        assert recording.ir[i] == sample.ir
        assert recording.green[i] == sample.green
        assert (recording.accel_x[i], recording.accel_y[i], recording.accel_z[i]) == (
            sample.accel_x, sample.accel_y, sample.accel_z)


def test_empty_binary_capture(tmp_path):
    path = tmp_path / 'empty.bin'
    path.write_bytes(b'')

    assert len(load_binary_capture(path)) == 0


def test_replay_session_runs_batch(tmp_path):
    recording = load_session_csv(write_csv(tmp_path / 'session.csv', 300))
    processor = BiometricProcessor(BiometricConfiguration.oralable())

    result = replay_session(recording, processor)

    assert result.processing_method == ProcessingMethod.BATCH
    assert result.heart_rate_bpm is not None
    assert abs(result.heart_rate_bpm - 72) <= 2


def test_recording_features():
    recording = SessionRecording(*ppg_channels(500))
    features = recording_features(recording)

    assert 70 <= features.heart_rate_bpm <= 74
