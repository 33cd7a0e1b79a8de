# File: parkpool/application/dtos.py
"""
Data Transfer Objects (DTOs) for the ParkPool allocation service

DTOs are what the presentation layer sends and receives:
1. Input DTOs - VehicleDTO, validated before a domain Vehicle is built
2. Output DTOs - TicketDTO, ReceiptDTO, ParkingLotStatusDTO

No business logic lives here, only validation and conversion.
"""

from typing import Dict, Optional, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.models import Vehicle, VehicleType, Ticket, Receipt, LicensePlate


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to dictionary"""
        return self.model_dump(mode="json", exclude_none=exclude_none, **kwargs)

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        return cls(**json.loads(json_str))


# ============================================================================
# ENUM DTOs
# ============================================================================

class VehicleTypeDTO(str, Enum):
    """Vehicle type DTO"""
    COMPACT = "compact"
    LARGE = "large"
    HANDICAPPED = "handicapped"


class TicketStatusDTO(str, Enum):
    """Ticket status DTO"""
    ACTIVE = "active"
    CLOSED = "closed"


# ============================================================================
# INPUT DTOs
# ============================================================================

class VehicleDTO(BaseDTO):
    """Vehicle arriving at the gate"""
    license_plate: str = Field(..., min_length=2, max_length=10, description="License plate")
    vehicle_type: VehicleTypeDTO = Field(..., description="Vehicle type")

    @field_validator("license_plate")
    @classmethod
    def validate_license_plate(cls, value: str) -> str:
        return LicensePlate(value).value

    @field_validator("vehicle_type", mode="before")
    @classmethod
    def normalize_vehicle_type(cls, value: Any) -> Any:
        if isinstance(value, VehicleType):
            return value.value
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def to_domain(self) -> Vehicle:
        return Vehicle(LicensePlate(self.license_plate), VehicleType.parse(self.vehicle_type))


# ============================================================================
# OUTPUT DTOs
# ============================================================================

class TicketDTO(BaseDTO):
    """Ticket handed back to the driver"""
    ticket_id: str
    spot_id: str
    spot_type: VehicleTypeDTO
    license_plate: Optional[str] = None
    entry_time: datetime
    exit_time: Optional[datetime] = None
    status: TicketStatusDTO

    @classmethod
    def from_domain(cls, ticket: Ticket) -> 'TicketDTO':
        return cls(
            ticket_id=ticket.id,
            spot_id=ticket.spot.id,
            spot_type=ticket.spot.spot_type.value,
            license_plate=ticket.vehicle.license_plate.value if ticket.vehicle else None,
            entry_time=ticket.entry_time,
            exit_time=ticket.exit_time,
            status=ticket.status.value,
        )


class ReceiptDTO(BaseDTO):
    """Completed payment"""
    receipt_id: str
    amount: Decimal = Field(..., ge=0)
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    method: str
    issued_at: datetime

    @classmethod
    def from_domain(cls, receipt: Receipt) -> 'ReceiptDTO':
        return cls(
            receipt_id=receipt.receipt_id,
            amount=receipt.amount,
            currency=receipt.currency,
            method=receipt.method,
            issued_at=receipt.issued_at,
        )


class SpotTypeStatusDTO(BaseDTO):
    """Counts for one spot type"""
    total: int = Field(..., ge=0)
    available: int = Field(..., ge=0)
    occupied: int = Field(..., ge=0)


class ParkingLotStatusDTO(BaseDTO):
    """Occupancy snapshot of a lot"""
    parking_lot_id: str
    name: str
    total_spots: int = Field(..., ge=0)
    available_spots: int = Field(..., ge=0)
    occupied_spots: int = Field(..., ge=0)
    occupancy_rate: float = Field(..., ge=0, le=1)
    by_type: Dict[str, SpotTypeStatusDTO]
    strategy: str
    active_tickets: Optional[int] = None
    timestamp: datetime

    @classmethod
    def from_report(cls, report: Dict[str, Any]) -> 'ParkingLotStatusDTO':
        """Build from ParkingLot.get_status_report() / ParkingService.get_lot_status()"""
        fields = {name: report[name] for name in cls.model_fields if name in report}
        return cls(**fields)
