import numpy as np
import pytest

from oralable_system.dsp.filters import ButterworthFilter, RecursiveBandpass

from conftest import sine


def test_recursive_bandpass_rejects_dc():
    bandpass = RecursiveBandpass()
    outputs = [bandpass.update(100000.0) for _ in range(100)]
    assert all(value == 0.0 for value in outputs)


def test_recursive_bandpass_passes_cardiac_band():
    bandpass = RecursiveBandpass()
    signal = sine(72, 50.0, 500, amplitude=2000.0, offset=100000.0)
    filtered = np.array([bandpass.update(x) for x in signal])

    assert filtered[250:].std() > 1.0
    assert abs(filtered[250:].mean()) < 1.0


def test_recursive_bandpass_reset():
    bandpass = RecursiveBandpass()
    for x in sine(72, 50.0, 50, amplitude=100.0):
        bandpass.update(x)
    bandpass.reset()

    assert bandpass.update(5000.0) == 0.0


@pytest.mark.parametrize('kwargs', [
    dict(kind='notch', cutoff_low=1.0, sample_rate=50.0),
    dict(kind='bandpass', cutoff_low=0.5, sample_rate=50.0),
    dict(kind='bandpass', cutoff_low=0.5, sample_rate=50.0, cutoff_high=8.0, order=3),
])
def test_invalid_design_raises(kwargs):
    with pytest.raises(ValueError):
        ButterworthFilter(**kwargs)


def test_lowpass_unity_dc_gain():
    lowpass = ButterworthFilter('lowpass', 2.0, 50.0)
    output = lowpass.process(np.ones(500))
    assert output[-1] == pytest.approx(1.0, abs=1e-3)


def test_streaming_state_carries_between_blocks():
    x = sine(72, 50.0, 300, amplitude=1.0) + sine(600, 50.0, 300, amplitude=0.3)

    whole = ButterworthFilter('bandpass', 0.5, 50.0, cutoff_high=8.0, order=4).process(x)

    chunked = ButterworthFilter('bandpass', 0.5, 50.0, cutoff_high=8.0, order=4)
    parts = np.concatenate([chunked.process(x[:100]), chunked.process(x[100:])])

    np.testing.assert_allclose(parts, whole)


def test_process_sample_matches_block():
    x = sine(72, 50.0, 50, amplitude=1.0)
    block = ButterworthFilter('highpass', 0.5, 50.0).process(x)

    per_sample = ButterworthFilter('highpass', 0.5, 50.0)
    np.testing.assert_allclose([per_sample.process_sample(v) for v in x], block)


def test_filtfilt_is_zero_phase():
    x = sine(60, 50.0, 500, amplitude=1.0)
    lowpass = ButterworthFilter('lowpass', 5.0, 50.0, order=4)

    y = lowpass.filtfilt(x)
    np.testing.assert_allclose(y[150:-150], x[150:-150], atol=0.02)


def test_filtfilt_dc_input_has_no_edge_transient():
    x = np.full(300, 100000.0)
    y = ButterworthFilter('lowpass', 0.8, 50.0, order=4).filtfilt(x)
    np.testing.assert_allclose(y, x, rtol=1e-6)


def test_filtfilt_leaves_streaming_state_alone():
    lowpass = ButterworthFilter('lowpass', 2.0, 50.0)
    lowpass.process(np.ones(10))
    state = lowpass._zi.copy()

    lowpass.filtfilt(np.ones(100))
    np.testing.assert_array_equal(lowpass._zi, state)


def test_filtfilt_short_input_unchanged():
    y = ButterworthFilter('lowpass', 2.0, 50.0).filtfilt([1.0, 2.0, 3.0])
    assert y.tolist() == [1.0, 2.0, 3.0]
