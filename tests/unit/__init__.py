"""
Unit tests for the ParkPool package

Each module covers one layer component in isolation:
domain models, strategies, payments, the parking lot aggregate,
messaging, configuration/factories and DTOs.
"""
