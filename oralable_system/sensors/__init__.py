"""
Oralable System Sensors

Available Sensors:
- Oralable: PPG (red / IR / green) + 3-axis accelerometer over BLE (50 Hz)
"""

from .oralable import BiometricCollector, BiometricProcessor, BiometricConfiguration, CollectorConfig

__all__ = [
    'BiometricCollector',
    'BiometricProcessor',
    'BiometricConfiguration',
    'CollectorConfig',
]

__version__ = '1.0.0'
