# File: parkpool/domain/strategies.py
"""
Strategy Pattern Implementation for the ParkPool allocation service

Encapsulates the interchangeable policies of the system so they can be
picked at construction time without touching ParkingLot or ParkingService:

1. Spot Allocation Strategies - which free spot a vehicle gets
2. Pricing Strategies - how a stay is turned into a fee

Allocation strategies are read-only with respect to the pool: they pick a
spot, the ParkingLot flips it. Returning None means "no eligible spot" and
is not an error.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union
from datetime import datetime
from decimal import Decimal
import logging
import math
import random

from .models import Spot, VehicleType


# ============================================================================
# STRATEGY INTERFACES
# ============================================================================

class SpotAllocationStrategy(ABC):
    """
    Abstract base class for spot allocation strategies
    Defines the interface for picking a free spot of a given type
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def find_spot(
        self,
        spots: Sequence[Spot],
        vehicle_type: VehicleType
    ) -> Optional[Spot]:
        """
        Pick an available spot matching the vehicle type
        Returns: Spot if one is eligible, None otherwise
        """
        pass

    @staticmethod
    def is_eligible(spot: Spot, vehicle_type: VehicleType) -> bool:
        """A spot is eligible when it is free and of the requested type"""
        return spot.available and spot.fits(vehicle_type)

    def get_strategy_name(self) -> str:
        """Get human-readable strategy name"""
        return self.__class__.__name__.replace("Strategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Strategy"


class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Defines the interface for fee calculation
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def calculate_fee(self, entry_time: datetime, exit_time: datetime) -> Decimal:
        """
        Calculate the fee for a stay between entry and exit
        Returns: non-negative fee
        """
        pass


# ============================================================================
# SPOT ALLOCATION STRATEGIES
# ============================================================================

class NearestFirstStrategy(SpotAllocationStrategy):
    """
    Strategy: first eligible spot in pool order
    Deterministic and stable across calls
    """

    def find_spot(
        self,
        spots: Sequence[Spot],
        vehicle_type: VehicleType
    ) -> Optional[Spot]:
        for spot in spots:
            if self.is_eligible(spot, vehicle_type):
                self.logger.debug(f"Nearest eligible spot for {vehicle_type.value}: {spot.id}")
                return spot
        return None


class RandomStrategy(SpotAllocationStrategy):
    """
    Strategy: any eligible spot, picked at random

    Shuffles a working copy, never the caller's sequence. Pass a seed or a
    random.Random instance to make the picks reproducible.
    """

    def __init__(self, rng: Union[random.Random, int, None] = None):
        super().__init__()
        if isinstance(rng, random.Random):
            self._rng = rng
        else:
            self._rng = random.Random(rng)

    def find_spot(
        self,
        spots: Sequence[Spot],
        vehicle_type: VehicleType
    ) -> Optional[Spot]:
        candidates = list(spots)
        self._rng.shuffle(candidates)

        for spot in candidates:
            if self.is_eligible(spot, vehicle_type):
                self.logger.debug(f"Random eligible spot for {vehicle_type.value}: {spot.id}")
                return spot
        return None


# ============================================================================
# PRICING STRATEGIES
# ============================================================================

class HourlyPricingStrategy(PricingStrategy):
    """
    Strategy: flat hourly rate, every started hour billed in full

    Elapsed time is counted in whole minutes (seconds are dropped), then
    billed hours = ceil(minutes / 60) with a minimum of one hour:
    59 min -> 1 h, 60 min -> 1 h, 61 min -> 2 h.
    """

    DEFAULT_RATE = Decimal('5')

    def __init__(self, rate_per_hour: Union[Decimal, int, str, None] = None):
        super().__init__()
        rate = Decimal(str(rate_per_hour)) if rate_per_hour is not None else self.DEFAULT_RATE
        if rate < Decimal('0'):
            raise ValueError(f"Hourly rate cannot be negative: {rate}")
        self.rate_per_hour = rate

    @staticmethod
    def billable_hours(minutes: int) -> int:
        """Hours charged for a stay of the given whole minutes"""
        if minutes < 0:
            raise ValueError(f"Duration cannot be negative: {minutes} minutes")
        return max(1, math.ceil(minutes / 60))

    def calculate_fee_for_minutes(self, minutes: int) -> Decimal:
        return self.rate_per_hour * self.billable_hours(minutes)

    def calculate_fee(self, entry_time: datetime, exit_time: datetime) -> Decimal:
        if exit_time < entry_time:
            raise ValueError("Exit time must not be before entry time")

        minutes = int((exit_time - entry_time).total_seconds() // 60)
        fee = self.calculate_fee_for_minutes(minutes)
        self.logger.debug(f"Fee for {minutes} min at {self.rate_per_hour}/h: {fee}")
        return fee
