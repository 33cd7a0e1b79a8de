"""
Integration tests for the ParkPool package

These drive the ParkingService end to end against a real ParkingLot,
ObserverBus and payment strategies:
1. Entry/exit workflows and fee calculation
2. Error handling across layers
3. Concurrent entries and exits
4. The demo command line entry point
"""
