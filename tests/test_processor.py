import threading

import numpy as np
import pytest

from oralable_system.results import (
    ActivityType,
    HeartRateEstimate,
    ProcessingMethod,
    SignalStrength,
    SpO2Estimate,
    Unavailable,
)
from oralable_system.sensors.oralable.config import BiometricConfiguration
from oralable_system.sensors.oralable.processor import BiometricProcessor

from conftest import ONE_G, ppg_channels


def feed(processor, channels, count=None):
    count = len(channels[0]) if count is None else count
    return [processor.process(*(c[i] for c in channels)) for i in range(count)]


def test_partial_results_until_window_fills(config, resting_session):
    processor = BiometricProcessor(config)
    results = feed(processor, resting_session, config.hr_window_size - 1)

    for result in results:
        assert isinstance(result.heart_rate, Unavailable)
        assert isinstance(result.spo2, Unavailable)
        assert result.signal_strength == SignalStrength.NONE
        assert not result.is_worn
        assert result.activity == ActivityType.RELAXED
        assert result.processing_method == ProcessingMethod.REALTIME


def test_resting_session_produces_full_result(config, resting_session):
    processor = BiometricProcessor(config)
    result = feed(processor, resting_session)[-1]

    assert isinstance(result.heart_rate, HeartRateEstimate)
    assert abs(result.heart_rate_bpm - 72) <= 2
    assert result.heart_rate_quality > config.min_hr_quality
    assert isinstance(result.spo2, SpO2Estimate)
    assert result.spo2_percentage == pytest.approx(96.2, abs=0.5)
    assert result.signal_strength == SignalStrength.STRONG
    assert result.perfusion_index == pytest.approx(0.04, rel=0.05)
    assert result.is_worn
    assert result.motion_level == 0.0


def test_spo2_below_quality_gate_is_unavailable(config, resting_session):
    gated = BiometricConfiguration.from_dict({**config.to_dict(), 'min_spo2_quality': 0.9})
    ungated = feed(BiometricProcessor(config), resting_session)[-1]
    result = feed(BiometricProcessor(gated), resting_session)[-1]

    assert ungated.spo2.quality < 0.9
    assert isinstance(result.spo2, Unavailable)
    assert 'quality' in result.spo2.reason
    assert result.heart_rate_bpm == ungated.heart_rate_bpm


def test_flat_ir_is_not_worn(config):
    processor = BiometricProcessor(config)
    count = 300
    flat = np.full(count, 100000.0)
    zeros = np.zeros(count)
    result = feed(processor, (flat, flat, flat, zeros, zeros, np.full(count, float(ONE_G))))[-1]

    assert result.signal_strength == SignalStrength.NONE
    assert result.perfusion_index == 0.0
    assert not result.is_worn
    assert isinstance(result.spo2, Unavailable)


def test_motion_skips_heart_rate_and_spo2(config, resting_session):
    ir, red, green, x, y, z = resting_session
    shaking = np.full(len(ir), 1.5 * ONE_G)

    processor = BiometricProcessor(config)
    result = feed(processor, (ir, red, green, shaking, y, np.zeros(len(ir))))[-1]

    assert result.activity == ActivityType.MOTION
    assert result.motion_level == pytest.approx(0.5)
    assert isinstance(result.heart_rate, Unavailable)
    assert isinstance(result.spo2, Unavailable)
    assert not result.is_worn


def test_reset_then_replay_is_deterministic(config, resting_session):
    processor = BiometricProcessor(config)
    first = feed(processor, resting_session, 250)

    processor.reset()
    second = feed(processor, resting_session, 250)

    assert first == second


def test_batch_matches_realtime_and_is_tagged(config, resting_session):
    realtime = feed(BiometricProcessor(config), resting_session)[-1]

    processor = BiometricProcessor(config)
    batch = processor.process_batch(*resting_session)

    assert batch.processing_method == ProcessingMethod.BATCH
    assert batch == realtime.with_method(ProcessingMethod.BATCH)


def test_batch_truncates_to_shortest_input(config, resting_session):
    ir, red, green, x, y, z = resting_session
    processor = BiometricProcessor(config)
    processor.process_batch(ir, red[:200], green, x, y, z)

    assert processor.get_status()['samples_processed'] == 200


def test_batch_resets_previous_state(config, resting_session):
    processor = BiometricProcessor(config)
    feed(processor, ppg_channels(300, bpm=100.0))

    assert processor.process_batch(*resting_session) == BiometricProcessor(config).process_batch(*resting_session)


def test_empty_batch_is_partial(config):
    result = BiometricProcessor(config).process_batch([], [], [], [], [], [])

    assert result.processing_method == ProcessingMethod.BATCH
    assert isinstance(result.heart_rate, Unavailable)
    assert result.activity == ActivityType.RELAXED


def test_reset_keeps_spectral_plan(config, resting_session):
    processor = BiometricProcessor(config)
    feed(processor, resting_session)
    assert processor.spectral.plan_builds == 1

    processor.reset()
    feed(processor, resting_session)
    assert processor.spectral.plan_builds == 1

    processor.close()
    assert processor.get_status()['closed']


def test_concurrent_callers_are_serialized(config, resting_session):
    processor = BiometricProcessor(config)

    def worker():
        feed(processor, resting_session, 100)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert processor.sample_count == 400
    assert len(processor.ir_buffer) == config.hr_window_size


def test_anr_preset_window(resting_session):
    config = BiometricConfiguration.anr()
    processor = BiometricProcessor(config)
    results = feed(processor, resting_session, 299)

    assert isinstance(results[-1].heart_rate, Unavailable)
    assert processor.get_status()['hr_window_fill'] == 299
