# File: parkpool/infrastructure/config.py
"""
Configuration for the ParkPool allocation service

ParkingConfig describes everything the bootstrap code needs to build a
lot: the hourly rate, the allocation policy and the spot layout, plus the
optional Redis channel for spot events. It can be read from a dict, a YAML
file or environment variables (PARKPOOL_*), later sources overriding
earlier ones.
"""

from typing import Dict, List, Optional, Any
from decimal import Decimal
from pathlib import Path
import logging
import os

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..domain.models import VehicleType


logger = logging.getLogger(__name__)


class SpotConfig(BaseModel):
    """One explicitly configured spot"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique spot id")
    vehicle_type: VehicleType

    @field_validator("vehicle_type", mode="before")
    @classmethod
    def parse_vehicle_type(cls, value: Any) -> VehicleType:
        return VehicleType.parse(value)


class ParkingConfig(BaseModel):
    """Settings for one parking lot and its service"""
    model_config = ConfigDict(validate_assignment=True)

    name: str = "Parking Lot"
    rate_per_hour: Decimal = Field(default=Decimal("5"), ge=0)
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    allocation_strategy: str = Field(default="nearest", pattern=r"^(nearest|random)$")
    random_seed: Optional[int] = None
    layout: Dict[VehicleType, int] = Field(default_factory=dict)
    spots: List[SpotConfig] = Field(default_factory=list)
    redis_url: Optional[str] = None
    redis_channel: str = "parkpool.spots"
    log_level: str = "INFO"

    @field_validator("layout", mode="before")
    @classmethod
    def parse_layout(cls, value: Any) -> Dict[VehicleType, int]:
        if value is None:
            return {}
        layout = {}
        for key, count in dict(value).items():
            count = int(count)
            if count < 0:
                raise ValueError(f"Spot count for {key} cannot be negative")
            layout[VehicleType.parse(key)] = count
        return layout

    @field_validator("allocation_strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, value: Any) -> str:
        return str(value).strip().lower()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def check_unique_spot_ids(self) -> 'ParkingConfig':
        seen = set()
        for spot in self.spots:
            if spot.id in seen:
                raise ValueError(f"Duplicate spot id in configuration: {spot.id}")
            seen.add(spot.id)
        return self

    @property
    def total_spots(self) -> int:
        return len(self.spots) + sum(self.layout.values())

    # ========================================================================
    # LOADERS
    # ========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParkingConfig':
        return cls(**(data or {}))

    @classmethod
    def from_yaml(cls, path) -> 'ParkingConfig':
        """Load settings from a YAML file (top-level mapping)"""
        path = Path(path)
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")

        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        prefix: str = "PARKPOOL_",
        base: Optional['ParkingConfig'] = None,
        environ: Optional[Dict[str, str]] = None
    ) -> 'ParkingConfig':
        """
        Override scalar settings from environment variables
        e.g. PARKPOOL_RATE_PER_HOUR=7, PARKPOOL_ALLOCATION_STRATEGY=random
        """
        environ = os.environ if environ is None else environ
        data = base.model_dump() if base is not None else {}

        scalar_fields = (
            "name", "rate_per_hour", "currency", "allocation_strategy",
            "random_seed", "redis_url", "redis_channel", "log_level",
        )
        for field_name in scalar_fields:
            key = f"{prefix}{field_name.upper()}"
            if key in environ:
                data[field_name] = environ[key]

        return cls.from_dict(data)
