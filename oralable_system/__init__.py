"""
Oralable System
Biometric signal processing for the Oralable oral wearable

Packages:
- protocol: BLE packet decoding and frame-counter tracking
- dsp:      motion compensation, filtering, HR / SpO2 / perfusion estimation
- sensors:  the Oralable processor, collector and configuration

Modules:
- pipeline: raw notifications -> paired samples -> processing worker
- session:  recorded-session loading and batch replay
- results:  tagged result value types
"""

from .results import (
    ActivityType,
    BiometricResult,
    HeartRateEstimate,
    HRSource,
    ProcessingMethod,
    SignalStrength,
    SpO2Estimate,
    Unavailable,
)
from .sensors.oralable import BiometricCollector, BiometricConfiguration, BiometricProcessor, CollectorConfig
from .pipeline import SensorPipeline

__all__ = [
    'ActivityType',
    'BiometricResult',
    'HeartRateEstimate',
    'HRSource',
    'ProcessingMethod',
    'SignalStrength',
    'SpO2Estimate',
    'Unavailable',
    'BiometricCollector',
    'BiometricConfiguration',
    'BiometricProcessor',
    'CollectorConfig',
    'SensorPipeline',
]

__version__ = '1.0.0'
