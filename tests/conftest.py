"""Shared pytest configuration and fixtures for the Oralable test suite."""

import struct
import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from oralable_system.sensors.oralable.config import BiometricConfiguration  # noqa: E402


ONE_G = 16384


# =============================================================================
# Synthetic signals
# =============================================================================

def sine(bpm, sample_rate, count, amplitude=1.0, offset=0.0, phase=0.0):
    """Pulse-like sinusoid at the given heart rate."""
    t = np.arange(count) / sample_rate
    return offset + amplitude * np.sin(2 * np.pi * (bpm / 60.0) * t + phase)


def ppg_channels(count, bpm=72.0, sample_rate=50.0):
    """Realistic DC + AC optical channels with the accelerometer at rest."""
    ir = sine(bpm, sample_rate, count, amplitude=2000.0, offset=100000.0)
    red = sine(bpm, sample_rate, count, amplitude=1000.0, offset=80000.0)
    green = sine(bpm, sample_rate, count, amplitude=1500.0, offset=50000.0)
    zeros = np.zeros(count)
    return ir, red, green, zeros, zeros.copy(), np.full(count, float(ONE_G))


@pytest.fixture
def config():
    return BiometricConfiguration.oralable()


@pytest.fixture
def resting_session():
    """Ten seconds of 72 BPM optical data at 50 Hz, device stationary."""
    return ppg_channels(500)


# =============================================================================
# Wire packets
# =============================================================================

def ppg_packet(counter, samples):
    """Frame counter + (red, ir, green) triples as the firmware sends them."""
    payload = b''.join(struct.pack('<III', r & 0xFFFFFFFF, i & 0xFFFFFFFF, g & 0xFFFFFFFF)
                       for r, i, g in samples)
    return struct.pack('<I', counter) + payload


def accel_packet(counter, samples):
    return struct.pack('<I', counter) + b''.join(struct.pack('<hhh', *s) for s in samples)


def combined_sample(red, ir, green, x, y, z):
    return struct.pack('<iiihhh', red, ir, green, x, y, z)
