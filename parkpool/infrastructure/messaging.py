# File: parkpool/infrastructure/messaging.py
"""
Messaging Infrastructure for the ParkPool allocation service

This module implements the observer side of the system:
1. ObserverBus - explicit registration list with synchronous fan-out
2. Observers - logging, occupancy counting, Redis pub/sub publishing
3. SpotEvent - serialisable record of an allocation or release

Fan-out is synchronous and in subscription order. An observer that raises
is logged and skipped; the remaining observers still run and the error
never reaches the caller of allocate/release. The ParkingLot calls the bus
after releasing its lock, so observers may read from the lot.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, List, Any, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import uuid4
import json
import logging
import threading

import redis

from ..domain.models import Spot, VehicleType


# ============================================================================
# EVENT TYPES
# ============================================================================

class EventType(str, Enum):
    """Spot event types"""
    SPOT_ALLOCATED = "spot_allocated"
    SPOT_RELEASED = "spot_released"


@dataclass
class SpotEvent:
    """A single allocation or release, ready to leave the process"""
    event_type: EventType
    spot_id: str
    spot_type: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_spot(cls, event_type: EventType, spot: Spot) -> 'SpotEvent':
        return cls(event_type=event_type, spot_id=spot.id, spot_type=spot.spot_type.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "spot_id": self.spot_id,
            "spot_type": self.spot_type,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SpotEvent':
        return cls(
            event_type=EventType(data["event_type"]),
            spot_id=data["spot_id"],
            spot_type=data["spot_type"],
            event_id=data["event_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'SpotEvent':
        return cls.from_dict(json.loads(json_str))


# ============================================================================
# OBSERVER INTERFACE
# ============================================================================

class ParkingLotObserver(ABC):
    """Abstract base class for listeners of spot events"""

    @abstractmethod
    def on_spot_allocated(self, spot: Spot) -> None:
        """Called after a spot was handed out"""
        pass

    @abstractmethod
    def on_spot_released(self, spot: Spot) -> None:
        """Called after a spot returned to the pool"""
        pass


# ============================================================================
# OBSERVER BUS
# ============================================================================

class ObserverBus:
    """
    In-process observer registry with synchronous, best-effort fan-out

    Observers are kept in subscription order. Each notification iterates
    over a snapshot of the list, so (un)subscribing from inside a callback
    only affects later notifications.
    """

    def __init__(self):
        self._observers: List[ParkingLotObserver] = []
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, observer: ParkingLotObserver) -> None:
        """Register an observer; subscribing twice has no effect"""
        with self._lock:
            if observer in self._observers:
                return
            self._observers.append(observer)
        self._logger.debug(f"Subscribed {observer.__class__.__name__}")

    def unsubscribe(self, observer: ParkingLotObserver) -> bool:
        """Remove an observer; returns False if it was not subscribed"""
        with self._lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                return False
        self._logger.debug(f"Unsubscribed {observer.__class__.__name__}")
        return True

    @property
    def observers(self) -> Tuple[ParkingLotObserver, ...]:
        with self._lock:
            return tuple(self._observers)

    def notify_allocated(self, spot: Spot) -> None:
        self._fan_out("on_spot_allocated", spot)

    def notify_released(self, spot: Spot) -> None:
        self._fan_out("on_spot_released", spot)

    def clear_subscribers(self) -> None:
        """Remove all observers (for testing)"""
        with self._lock:
            self._observers.clear()

    def _fan_out(self, callback_name: str, spot: Spot) -> None:
        for observer in self.observers:
            try:
                getattr(observer, callback_name)(spot)
            except Exception as e:
                self._logger.error(
                    f"Error in {observer.__class__.__name__}.{callback_name} for spot {spot.id}: {e}",
                    exc_info=True
                )


# ============================================================================
# OBSERVERS
# ============================================================================

class LoggingSpotObserver(ParkingLotObserver):
    """Writes every spot event to the log"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def on_spot_allocated(self, spot: Spot) -> None:
        self.logger.info(f"Spot allocated: {spot.id} ({spot.spot_type.value})")

    def on_spot_released(self, spot: Spot) -> None:
        self.logger.info(f"Spot released: {spot.id} ({spot.spot_type.value})")


class OccupancyCounterObserver(ParkingLotObserver):
    """
    Keeps running counters per vehicle type
    Safe to share between threads
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._allocations: Dict[VehicleType, int] = {t: 0 for t in VehicleType}
        self._releases: Dict[VehicleType, int] = {t: 0 for t in VehicleType}

    def on_spot_allocated(self, spot: Spot) -> None:
        with self._lock:
            self._allocations[spot.spot_type] += 1

    def on_spot_released(self, spot: Spot) -> None:
        with self._lock:
            self._releases[spot.spot_type] += 1

    def allocations(self, vehicle_type: Optional[VehicleType] = None) -> int:
        with self._lock:
            if vehicle_type is None:
                return sum(self._allocations.values())
            return self._allocations[vehicle_type]

    def releases(self, vehicle_type: Optional[VehicleType] = None) -> int:
        with self._lock:
            if vehicle_type is None:
                return sum(self._releases.values())
            return self._releases[vehicle_type]

    def occupied(self, vehicle_type: Optional[VehicleType] = None) -> int:
        """Spots handed out and not yet returned, as seen by this observer"""
        with self._lock:
            types = list(VehicleType) if vehicle_type is None else [vehicle_type]
            return sum(self._allocations[t] - self._releases[t] for t in types)

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {
                t.value: {
                    "allocations": self._allocations[t],
                    "releases": self._releases[t],
                    "occupied": self._allocations[t] - self._releases[t],
                }
                for t in VehicleType
            }


class RedisSpotEventPublisher(ParkingLotObserver):
    """
    Publishes spot events as JSON on a Redis pub/sub channel

    Takes an existing client or builds one from a URL. A failed publish
    raises; the ObserverBus logs it and carries on with the next observer.
    """

    DEFAULT_CHANNEL = "parkpool.spots"

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        redis_url: str = "redis://localhost:6379",
        channel: str = DEFAULT_CHANNEL
    ):
        self.redis_client = redis_client or redis.Redis.from_url(redis_url)
        self.channel = channel
        self._logger = logging.getLogger(self.__class__.__name__)

    def on_spot_allocated(self, spot: Spot) -> None:
        self.publish(SpotEvent.from_spot(EventType.SPOT_ALLOCATED, spot))

    def on_spot_released(self, spot: Spot) -> None:
        self.publish(SpotEvent.from_spot(EventType.SPOT_RELEASED, spot))

    def publish(self, event: SpotEvent) -> int:
        """Publish an event; returns the number of subscribers that received it"""
        receivers = self.redis_client.publish(self.channel, event.to_json())
        self._logger.debug(
            f"Published {event.event_type.value} for spot {event.spot_id} "
            f"to {self.channel} ({receivers} receivers)"
        )
        return receivers

    def close(self) -> None:
        self.redis_client.close()
        self._logger.info("Redis publisher closed")
