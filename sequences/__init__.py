"""
Sequences Package

This package contains test sequences for the NeuroHub station service.
Each sequence is a self-contained package with its own drivers,
protocol library and test logic.

Available sequences:
- sds011_sensor_test: SDS011 particulate matter sensor test sequence
"""

__all__ = ["sds011_sensor_test"]
