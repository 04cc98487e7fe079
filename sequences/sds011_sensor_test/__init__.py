"""
SDS011 Sensor Test Sequence Package

Provides an automated test sequence for the SDS011 PM2.5/PM10 sensor.
"""

from .sequence import SDS011SensorTestSequence

__all__ = ["SDS011SensorTestSequence"]
