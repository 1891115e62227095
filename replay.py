"""
Oralable Session Replay - offline batch processing of a recorded session
Usage: python replay.py --csv session.csv [--preset anr] [--features]
       python replay.py --binary capture.bin
"""
import argparse
import json
import logging
import sys

from oralable_system.sensors.oralable.config import BiometricConfiguration
from oralable_system.sensors.oralable.processor import BiometricProcessor
from oralable_system.session import (
    load_binary_capture,
    load_session_csv,
    recording_features,
    replay_session,
)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

logger = logging.getLogger('replay')

PRESETS = {
    'oralable': BiometricConfiguration.oralable,
    'anr': BiometricConfiguration.anr,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Replay a recorded Oralable session through the biometric processor')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--csv', help='Session CSV export')
    source.add_argument('--binary', help='Capture of concatenated 18-byte combined samples')
    parser.add_argument('--preset', choices=sorted(PRESETS), default='oralable', help='Device preset')
    parser.add_argument('--config', help='JSON file of configuration overrides')
    parser.add_argument('--features', action='store_true', help='Also compute offline HR / HRV / IR DC shift')
    parser.add_argument('--log-file', help='Write DEBUG log to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def build_config(args) -> BiometricConfiguration:
    config = PRESETS[args.preset]()
    if args.config:
        with open(args.config) as f:
            overrides = json.load(f)
        config = BiometricConfiguration.from_dict({**config.to_dict(), **overrides})
    return config


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT
    )
    if args.log_file:
        fh = logging.FileHandler(args.log_file)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(fh)

    try:
        config = build_config(args)
        if args.csv:
            recording = load_session_csv(args.csv, accel_lsb_per_g=config.accel_lsb_per_g)
        else:
            recording = load_binary_capture(args.binary)
    except (OSError, ValueError) as e:
        logger.error(f"✗ Could not load input: {e}")
        return 1

    estimated = recording.estimated_sample_rate
    if estimated and abs(estimated - config.sample_rate) > 0.2 * config.sample_rate:
        logger.warning(
            f"Recording appears to be ~{estimated:.1f} Hz but preset '{args.preset}' "
            f"expects {config.sample_rate:.0f} Hz"
        )

    processor = BiometricProcessor(config)
    try:
        result = replay_session(recording, processor)
    finally:
        processor.close()

    logger.info(f"✓ Batch result: {result.to_dict()}")

    if args.features:
        features = recording_features(recording, config)
        logger.info(f"✓ Session features: {features.to_dict()}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
