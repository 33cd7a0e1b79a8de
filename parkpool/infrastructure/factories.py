# File: parkpool/infrastructure/factories.py
"""
Factory Pattern Implementation for the ParkPool allocation service

This module centralises object creation:
1. Domain Object Factories - spots, tickets and a fully wired parking lot
2. Strategy Factories - allocation and payment strategies chosen by name

Callers ask for "random" or "credit_card" and get a ready strategy back,
which keeps strategy selection out of ParkingLot and ParkingService.
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional, Dict, List, Union, Type
from datetime import datetime
import logging
import random
import uuid

from ..domain.models import Spot, Ticket, Vehicle, VehicleType
from ..domain.aggregates import ParkingLot
from ..domain.strategies import (
    SpotAllocationStrategy, NearestFirstStrategy, RandomStrategy
)
from ..domain.payments import (
    PaymentStrategy, CreditCardPayment, CashPayment, LoggingPaymentDecorator
)
from .config import ParkingConfig
from .messaging import (
    ObserverBus, LoggingSpotObserver, RedisSpotEventPublisher
)


T = TypeVar('T')


# ============================================================================
# FACTORY INTERFACES
# ============================================================================

class Factory(ABC, Generic[T]):
    """Base factory interface"""

    @abstractmethod
    def create(self, **kwargs) -> T:
        """Create an instance of T"""
        pass

    def create_many(self, count: int, **kwargs) -> List[T]:
        """Create multiple instances"""
        return [self.create(**kwargs) for _ in range(count)]


# ============================================================================
# DOMAIN OBJECT FACTORIES
# ============================================================================

class SpotFactory(Factory[Spot]):
    """Factory for creating Spot domain objects"""

    ID_PREFIXES = {
        VehicleType.COMPACT: "C",
        VehicleType.LARGE: "L",
        VehicleType.HANDICAPPED: "H",
    }

    def create(self, id: str, vehicle_type: Union[VehicleType, str]) -> Spot:
        return Spot(id, VehicleType.parse(vehicle_type))

    def create_many(
        self,
        count: int,
        vehicle_type: Union[VehicleType, str] = VehicleType.COMPACT,
        start_number: int = 1,
        prefix: Optional[str] = None
    ) -> List[Spot]:
        """Create `count` spots of one type with ids like C1, C2, ..."""
        if count < 0:
            raise ValueError("Spot count cannot be negative")

        vehicle_type = VehicleType.parse(vehicle_type)
        prefix = prefix if prefix is not None else self.ID_PREFIXES[vehicle_type]
        return [
            self.create(f"{prefix}{start_number + i}", vehicle_type)
            for i in range(count)
        ]

    def create_from_layout(self, layout: Dict[VehicleType, int]) -> List[Spot]:
        """Create spots for every type in the layout, in enum order"""
        spots: List[Spot] = []
        for vehicle_type in VehicleType:
            count = layout.get(vehicle_type, 0)
            if count > 0:
                spots.extend(self.create_many(count, vehicle_type))
        return spots


class TicketFactory(Factory[Ticket]):
    """Factory for creating Ticket domain objects with unique ids"""

    def create(
        self,
        spot: Spot,
        vehicle: Optional[Vehicle] = None,
        entry_time: Optional[datetime] = None
    ) -> Ticket:
        return Ticket(spot, vehicle=vehicle, entry_time=entry_time, id=self._generate_ticket_id())

    def _generate_ticket_id(self) -> str:
        return str(uuid.uuid4())


# ============================================================================
# STRATEGY FACTORIES
# ============================================================================

class AllocationStrategyFactory:
    """Factory for creating SpotAllocationStrategy instances"""

    STRATEGIES: Dict[str, Type[SpotAllocationStrategy]] = {
        "nearest": NearestFirstStrategy,
        "random": RandomStrategy,
    }

    def create_by_type(
        self,
        strategy_type: str,
        seed: Union[int, random.Random, None] = None
    ) -> SpotAllocationStrategy:
        strategy_class = self.STRATEGIES.get(strategy_type.strip().lower())
        if not strategy_class:
            raise ValueError(
                f"Unknown allocation strategy: {strategy_type}. "
                f"Expected one of: {', '.join(self.STRATEGIES)}"
            )

        if strategy_class is RandomStrategy:
            return RandomStrategy(seed)
        return strategy_class()


class PaymentStrategyFactory:
    """Factory for creating PaymentStrategy instances"""

    STRATEGIES: Dict[str, Type[PaymentStrategy]] = {
        "credit_card": CreditCardPayment,
        "cash": CashPayment,
    }

    def create_by_type(
        self,
        payment_method: str,
        currency: str = "USD",
        with_logging: bool = False
    ) -> PaymentStrategy:
        key = payment_method.strip().lower().replace("-", "_").replace(" ", "_")
        strategy_class = self.STRATEGIES.get(key)
        if not strategy_class:
            raise ValueError(
                f"Unknown payment method: {payment_method}. "
                f"Expected one of: {', '.join(self.STRATEGIES)}"
            )

        strategy: PaymentStrategy = strategy_class(currency=currency)
        if with_logging:
            strategy = LoggingPaymentDecorator(strategy)
        return strategy


# ============================================================================
# PARKING LOT FACTORY
# ============================================================================

class ParkingLotFactory:
    """Builds a ready-to-use ParkingLot, typically once at startup"""

    def __init__(
        self,
        spot_factory: Optional[SpotFactory] = None,
        strategy_factory: Optional[AllocationStrategyFactory] = None
    ):
        self.spot_factory = spot_factory or SpotFactory()
        self.strategy_factory = strategy_factory or AllocationStrategyFactory()
        self.logger = logging.getLogger(self.__class__.__name__)

    def create(
        self,
        layout: Optional[Dict[VehicleType, int]] = None,
        allocation_strategy: Optional[SpotAllocationStrategy] = None,
        observer_bus: Optional[ObserverBus] = None,
        name: str = "Parking Lot"
    ) -> ParkingLot:
        lot = ParkingLot(
            allocation_strategy=allocation_strategy,
            observer_bus=observer_bus,
            name=name
        )
        if layout:
            lot.add_spots(self.spot_factory.create_from_layout(layout))
        return lot

    def create_from_config(
        self,
        config: ParkingConfig,
        observer_bus: Optional[ObserverBus] = None,
        with_logging_observer: bool = True
    ) -> ParkingLot:
        """
        Build a lot from configuration
        Explicit spots come first (in file order), then the generated layout
        """
        if observer_bus is None:
            observer_bus = ObserverBus()

        if with_logging_observer:
            observer_bus.subscribe(LoggingSpotObserver())

        if config.redis_url:
            observer_bus.subscribe(
                RedisSpotEventPublisher(redis_url=config.redis_url, channel=config.redis_channel)
            )

        strategy = self.strategy_factory.create_by_type(
            config.allocation_strategy, seed=config.random_seed
        )
        lot = ParkingLot(
            allocation_strategy=strategy,
            observer_bus=observer_bus,
            name=config.name
        )

        lot.add_spots(self.spot_factory.create(s.id, s.vehicle_type) for s in config.spots)
        lot.add_spots(self.spot_factory.create_from_layout(config.layout))

        self.logger.info(
            f"Created {lot.name} with {lot.total_spots} spots "
            f"({strategy.get_strategy_name()} allocation)"
        )
        return lot
