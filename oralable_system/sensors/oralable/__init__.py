"""
Oralable Sensor Module
Heart rate, SpO2 and jaw-activity estimation for the Oralable wearable

Architecture:
- Processor: per-sample motion compensation, filtering and estimation
- Collector: single worker thread feeding the processor from a queue
- Config:    immutable processing parameters with per-device presets

Outputs per sample:
- Heart rate (BPM) with quality and source channel
- Blood oxygen saturation (SpO2%)
- Perfusion index, signal strength and worn status
- Activity (relaxed / clenching / grinding / motion)
"""

from .collector import BiometricCollector
from .processor import BiometricProcessor
from .config import BiometricConfiguration, CollectorConfig

__all__ = [
    'BiometricCollector',
    'BiometricProcessor',
    'BiometricConfiguration',
    'CollectorConfig',
]

__version__ = '1.0.0'
