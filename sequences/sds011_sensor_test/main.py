#!/usr/bin/env python3
"""
SDS011 Sensor Test Sequence - CLI Entry Point (SDK 2.0)

This module provides the CLI entry point for running the sequence
as a subprocess from Station Service.

Usage:
    python -m sequences.sds011_sensor_test.main --start --config '{"wip_id": "WIP001"}'
    python -m sequences.sds011_sensor_test.main --start --dry-run
    python -m sequences.sds011_sensor_test.main --stop
"""

from .sequence import SDS011SensorTestSequence

if __name__ == "__main__":
    exit(SDS011SensorTestSequence.run_from_cli())
