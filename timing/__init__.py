"""
Simulated time for the orbit pipeline.
Live or custom playback at arbitrary signed speed, without discontinuities.
"""

from .virtual_clock import VirtualClock, ClockMode, SimulatedInstant, timestamp_to_datetime

__all__ = ['VirtualClock', 'ClockMode', 'SimulatedInstant', 'timestamp_to_datetime']
