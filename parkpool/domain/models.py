# File: parkpool/domain/models.py
"""
Domain Models for the ParkPool allocation service

This module contains:
1. Value Objects: LicensePlate, Vehicle, Receipt (immutable, no identity)
2. Entities: Spot and Ticket (identity and lifecycle)
3. Enums: VehicleType and TicketStatus

Spots and tickets carry the state the rest of the system reasons about:
a spot is either available or held by exactly one active ticket, and a
ticket moves once from ACTIVE to CLOSED.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
import re
import threading
import uuid
from enum import Enum

from .exceptions import (
    ResourceNotOccupied, SpotAlreadyOccupied, TicketAlreadyClosed
)


# ============================================================================
# ENUMS FOR DOMAIN TYPES
# ============================================================================

class VehicleType(Enum):
    """
    Enumeration of vehicle types
    Spots are typed with the same enum: a vehicle only fits a spot of its own type
    """
    COMPACT = "compact"
    LARGE = "large"
    HANDICAPPED = "handicapped"

    @classmethod
    def parse(cls, value: Any) -> 'VehicleType':
        """Parse a vehicle type from an enum member, value or name (case-insensitive)"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown vehicle type: {value!r}")

        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(
            f"Unknown vehicle type: {value!r}. "
            f"Expected one of: {', '.join(m.value for m in cls)}"
        )

    def __str__(self) -> str:
        return self.value.title()


class TicketStatus(Enum):
    """Lifecycle of a parking ticket"""
    ACTIVE = "active"    # Entry recorded, no exit yet
    CLOSED = "closed"    # Exit recorded, terminal


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)
class LicensePlate:
    """
    Value Object: License plate number with validation
    Represents the identity of a vehicle
    """
    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise ValueError("License plate cannot be empty")

        object.__setattr__(self, 'value', self.value.strip().upper())

        if len(self.value) < 2 or len(self.value) > 10:
            raise ValueError(f"License plate must be 2-10 characters, got: {self.value}")

        if not re.match(r'^[A-Z0-9\s\-]+$', self.value):
            raise ValueError(
                f"License plate can only contain letters, numbers, spaces, and hyphens: {self.value}"
            )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Vehicle:
    """
    Value Object: a vehicle asking for a spot
    Read-only after construction; plain strings are promoted to LicensePlate
    """
    license_plate: LicensePlate
    vehicle_type: VehicleType

    def __post_init__(self):
        if not isinstance(self.license_plate, LicensePlate):
            object.__setattr__(self, 'license_plate', LicensePlate(str(self.license_plate)))
        object.__setattr__(self, 'vehicle_type', VehicleType.parse(self.vehicle_type))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "license_plate": self.license_plate.value,
            "vehicle_type": self.vehicle_type.value,
        }

    def __str__(self) -> str:
        return f"{self.license_plate} ({self.vehicle_type})"


@dataclass(frozen=True)
class Receipt:
    """
    Value Object: proof of a completed charge
    Immutable once created; `method` names the payment strategy that produced it
    """
    amount: Decimal
    method: str
    currency: str = "USD"
    receipt_id: str = field(default_factory=lambda: str(uuid.uuid4()), compare=False)
    issued_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        if self.amount < Decimal('0'):
            raise ValueError(f"Receipt amount cannot be negative: {self.amount}")

        if not self.method:
            raise ValueError("Receipt method cannot be empty")

        if len(self.currency) != 3:
            raise ValueError(f"Currency must be 3-letter code: {self.currency}")

    def format(self) -> str:
        """Format the charged amount for display"""
        return f"${self.amount:.2f} {self.currency}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "receipt_id": self.receipt_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "method": self.method,
            "issued_at": self.issued_at.isoformat(),
        }


# ============================================================================
# DOMAIN ENTITIES
# ============================================================================

class Entity:
    """
    Base class for all domain entities
    Provides common functionality for entities with identity
    """

    def __init__(self, id: Optional[str] = None):
        self._id = id or str(uuid.uuid4())

    @property
    def id(self) -> str:
        """Get entity ID"""
        return self._id

    def __eq__(self, other: object) -> bool:
        """Entities are equal if they have the same ID and type"""
        if not isinstance(other, Entity):
            return False
        return self.id == other.id and type(self) == type(other)

    def __hash__(self) -> int:
        return hash((self.id, type(self).__name__))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id})"


class Spot(Entity):
    """
    Entity: a single exclusive parking unit of one vehicle type

    `available` is flipped only by occupy()/release(); the owning ParkingLot
    calls them while holding its lock.
    """

    def __init__(self, id: str, spot_type: VehicleType):
        if not id or not str(id).strip():
            raise ValueError("Spot id cannot be empty")
        super().__init__(str(id))
        self._spot_type = VehicleType.parse(spot_type)
        self._available = True

    @property
    def spot_type(self) -> VehicleType:
        return self._spot_type

    @property
    def available(self) -> bool:
        return self._available

    def is_available(self) -> bool:
        return self._available

    def fits(self, vehicle_type: VehicleType) -> bool:
        """Check if a vehicle of the given type may use this spot"""
        return self._spot_type == vehicle_type

    def occupy(self) -> None:
        """
        Mark the spot as taken
        Raises: SpotAlreadyOccupied if it is already taken
        """
        if not self._available:
            raise SpotAlreadyOccupied(self.id)
        self._available = False

    def release(self) -> None:
        """
        Mark the spot as free again
        Raises: ResourceNotOccupied if it was already free
        """
        if self._available:
            raise ResourceNotOccupied(self.id)
        self._available = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "spot_type": self._spot_type.value,
            "available": self._available,
        }

    def __repr__(self) -> str:
        return f"Spot(id={self.id}, type={self._spot_type.value}, available={self._available})"

    def __str__(self) -> str:
        status = "available" if self._available else "occupied"
        return f"Spot {self.id} ({self._spot_type}) - {status}"


class Ticket(Entity):
    """
    Entity: binds one vehicle's stay to one spot, from entry to exit

    The spot is set at creation and never reassigned. mark_exit() is the
    single ACTIVE -> CLOSED gate: the check and the write happen under the
    ticket's own lock so a ticket can only be exited once.
    """

    def __init__(
        self,
        spot: Spot,
        vehicle: Optional[Vehicle] = None,
        entry_time: Optional[datetime] = None,
        id: Optional[str] = None
    ):
        super().__init__(id)
        self._spot = spot
        self._vehicle = vehicle
        self._entry_time = entry_time or datetime.now()
        self._exit_time: Optional[datetime] = None
        self._status = TicketStatus.ACTIVE
        self._lock = threading.Lock()

    @property
    def spot(self) -> Spot:
        return self._spot

    @property
    def vehicle(self) -> Optional[Vehicle]:
        return self._vehicle

    @property
    def entry_time(self) -> datetime:
        return self._entry_time

    @property
    def exit_time(self) -> Optional[datetime]:
        return self._exit_time

    @property
    def status(self) -> TicketStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status == TicketStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self._status == TicketStatus.CLOSED

    def mark_exit(self, exit_time: Optional[datetime] = None) -> datetime:
        """
        Record the exit time and close the ticket
        Raises: TicketAlreadyClosed on a second exit, ValueError if exit precedes entry
        """
        exit_time = exit_time or datetime.now()

        with self._lock:
            if self._status == TicketStatus.CLOSED:
                raise TicketAlreadyClosed(self.id)

            if exit_time < self._entry_time:
                raise ValueError(
                    f"Exit time {exit_time.isoformat()} is before entry time "
                    f"{self._entry_time.isoformat()}"
                )

            self._exit_time = exit_time
            self._status = TicketStatus.CLOSED

        return exit_time

    def reopen(self) -> None:
        """Undo mark_exit() when the exit could not be completed (e.g. payment failed)"""
        with self._lock:
            self._exit_time = None
            self._status = TicketStatus.ACTIVE

    @property
    def duration_minutes(self) -> int:
        """
        Whole minutes between entry and exit (truncated)
        Raises: ValueError while the ticket is still active
        """
        if self._exit_time is None:
            raise ValueError(f"Ticket {self.id} has no exit time yet")
        return int((self._exit_time - self._entry_time).total_seconds() // 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "spot_id": self._spot.id,
            "spot_type": self._spot.spot_type.value,
            "license_plate": self._vehicle.license_plate.value if self._vehicle else None,
            "entry_time": self._entry_time.isoformat(),
            "exit_time": self._exit_time.isoformat() if self._exit_time else None,
            "status": self._status.value,
        }

    def __str__(self) -> str:
        return f"Ticket {self.id} for spot {self._spot.id} ({self._status.value})"
