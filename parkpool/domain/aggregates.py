# File: parkpool/domain/aggregates.py
"""
Aggregate Roots for the ParkPool allocation service

Aggregates:
1. ParkingLot - the resource pool: owns the spot inventory and hands spots out

Key Concepts:
- All inventory changes go through the aggregate root (add_spot/allocate/release)
- The allocation scan and the availability flip share one critical section
- Observers are notified after the lock is released, so an observer may
  call back into the lot (e.g. to read occupancy) without deadlocking
"""

from typing import List, Optional, Dict, Iterable, Tuple, Any, Protocol
from datetime import datetime
import logging
import threading

from .models import Entity, Spot, VehicleType
from .strategies import SpotAllocationStrategy, NearestFirstStrategy
from .exceptions import (
    DuplicateResourceId, ResourceExhausted, ResourceNotOccupied, UnknownResource
)


class SpotEventNotifier(Protocol):
    """What the lot needs from an observer bus"""

    def notify_allocated(self, spot: Spot) -> None:
        ...

    def notify_released(self, spot: Spot) -> None:
        ...


# ============================================================================
# BASE AGGREGATE ROOT
# ============================================================================

class AggregateRoot(Entity):
    """
    Base class for all aggregate roots
    Provides versioning of state changes
    """

    def __init__(self, id: Optional[str] = None):
        super().__init__(id)
        self._version: int = 1
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def version(self) -> int:
        """Get current aggregate version"""
        return self._version

    def _increment_version(self) -> None:
        """Increment version after state change"""
        self._version += 1


# ============================================================================
# PARKING LOT AGGREGATE
# ============================================================================

class ParkingLot(AggregateRoot):
    """
    Aggregate Root: the pool of typed, exclusive spots

    One instance is built at startup and handed to the ParkingService
    explicitly; there is no module-level singleton.
    """

    def __init__(
        self,
        allocation_strategy: Optional[SpotAllocationStrategy] = None,
        observer_bus: Optional[SpotEventNotifier] = None,
        name: str = "Parking Lot",
        id: Optional[str] = None
    ):
        super().__init__(id)
        self.name = name
        self.allocation_strategy = allocation_strategy or NearestFirstStrategy()
        self._observer_bus = observer_bus

        # Internal state, guarded by _lock
        self._spots: List[Spot] = []
        self._spot_index: Dict[str, Spot] = {}
        self._lock = threading.Lock()

        self.creation_date: datetime = datetime.now()
        self.last_updated: datetime = self.creation_date

    @property
    def observer_bus(self) -> Optional[SpotEventNotifier]:
        return self._observer_bus

    # ========================================================================
    # INVENTORY SETUP
    # ========================================================================

    def add_spot(self, spot: Spot) -> None:
        """
        Register a spot with the lot
        Raises: DuplicateResourceId if a spot with the same id exists
        """
        with self._lock:
            if spot.id in self._spot_index:
                raise DuplicateResourceId(spot.id)

            self._spots.append(spot)
            self._spot_index[spot.id] = spot
            self._touch()

        self._logger.debug(f"Added spot {spot.id} ({spot.spot_type.value}) to {self.name}")

    def add_spots(self, spots: Iterable[Spot]) -> None:
        for spot in spots:
            self.add_spot(spot)

    # ========================================================================
    # PUBLIC BUSINESS METHODS
    # ========================================================================

    def allocate(self, vehicle_type: VehicleType) -> Spot:
        """
        Hand out a free spot of the given type
        Returns: the spot, already marked unavailable
        Raises: ResourceExhausted if no eligible spot exists
        """
        vehicle_type = VehicleType.parse(vehicle_type)

        with self._lock:
            spot = self.allocation_strategy.find_spot(tuple(self._spots), vehicle_type)
            if spot is None:
                self._logger.warning(f"No available spot for {vehicle_type.value} in {self.name}")
                raise ResourceExhausted(vehicle_type)

            spot.occupy()
            self._touch()

        self._logger.info(
            f"Spot {spot.id} allocated for {vehicle_type.value} "
            f"({self.allocation_strategy.get_strategy_name()})"
        )
        if self._observer_bus is not None:
            self._observer_bus.notify_allocated(spot)
        return spot

    def release(self, spot: Spot) -> None:
        """
        Return a spot to the pool
        Raises: ResourceNotOccupied if the spot is already free,
                UnknownResource if the spot is not part of this lot
        """
        with self._lock:
            owned = self._spot_index.get(spot.id)
            if owned is None:
                raise UnknownResource(spot.id)

            if owned.available:
                self._logger.warning(f"Release of spot {owned.id} which is not occupied")
                raise ResourceNotOccupied(owned.id)

            owned.release()
            self._touch()

        self._logger.info(f"Spot {owned.id} released")
        if self._observer_bus is not None:
            self._observer_bus.notify_released(owned)

    # ========================================================================
    # QUERY METHODS (Read-only)
    # ========================================================================

    @property
    def spots(self) -> Tuple[Spot, ...]:
        """Snapshot of the inventory in pool order"""
        with self._lock:
            return tuple(self._spots)

    def get_spot(self, spot_id: str) -> Optional[Spot]:
        with self._lock:
            return self._spot_index.get(spot_id)

    @property
    def total_spots(self) -> int:
        with self._lock:
            return len(self._spots)

    def available_count(self, vehicle_type: Optional[VehicleType] = None) -> int:
        """Number of free spots, optionally of one type"""
        if vehicle_type is not None:
            vehicle_type = VehicleType.parse(vehicle_type)

        with self._lock:
            return sum(
                1 for spot in self._spots
                if spot.available and (vehicle_type is None or spot.fits(vehicle_type))
            )

    def occupied_count(self) -> int:
        with self._lock:
            return sum(1 for spot in self._spots if not spot.available)

    def get_occupancy_rate(self) -> float:
        with self._lock:
            total = len(self._spots)
            if total == 0:
                return 0.0
            occupied = sum(1 for spot in self._spots if not spot.available)
        return occupied / total

    def get_status_report(self) -> Dict[str, Any]:
        """Totals and per-type counts, computed from one consistent snapshot"""
        with self._lock:
            snapshot = [(spot.spot_type, spot.available) for spot in self._spots]
            version = self._version

        by_type: Dict[str, Dict[str, int]] = {}
        for vehicle_type in VehicleType:
            of_type = [available for spot_type, available in snapshot if spot_type == vehicle_type]
            by_type[vehicle_type.value] = {
                "total": len(of_type),
                "available": sum(1 for available in of_type if available),
                "occupied": sum(1 for available in of_type if not available),
            }

        total = len(snapshot)
        occupied = sum(1 for _, available in snapshot if not available)
        return {
            "parking_lot_id": self.id,
            "name": self.name,
            "total_spots": total,
            "available_spots": total - occupied,
            "occupied_spots": occupied,
            "occupancy_rate": occupied / total if total else 0.0,
            "by_type": by_type,
            "strategy": self.allocation_strategy.get_strategy_name(),
            "version": version,
            "timestamp": datetime.now().isoformat(),
        }

    # ========================================================================
    # INTERNAL HELPER METHODS
    # ========================================================================

    def _touch(self) -> None:
        """Record a state change; caller holds the lock"""
        self.last_updated = datetime.now()
        self._increment_version()

    def __str__(self) -> str:
        return f"{self.name}: {self.available_count()}/{self.total_spots} spots available"
