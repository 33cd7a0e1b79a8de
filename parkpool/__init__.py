"""
ParkPool - typed parking spot allocation with tickets, hourly fees,
pluggable payment strategies and spot event observers.
"""

__version__ = "1.0.0"
