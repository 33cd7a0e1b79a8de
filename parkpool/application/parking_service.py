# File: parkpool/application/parking_service.py
"""
Parking Application Service

Orchestrates the two use cases the presentation layer calls:

1. enter(vehicle) - allocate a spot of the vehicle's type and issue a ticket
2. exit(ticket, payment) - close the ticket, price the stay, take payment
   and return the spot to the pool

The service also keeps the registry of active tickets. The registry belongs
to one service instance: a ticket can only be exited at the service that
issued it, so a lot is fronted by a single ParkingService. Each ticket moves
once from ACTIVE to CLOSED; Ticket.mark_exit() is the atomic gate, so two
concurrent exits of the same ticket charge and release only once.
"""

from typing import Dict, List, Optional, Any, Callable, Protocol, runtime_checkable
from datetime import datetime
from decimal import Decimal
import logging
import threading

from ..domain.models import Ticket, Vehicle, Receipt
from ..domain.aggregates import ParkingLot
from ..domain.strategies import PricingStrategy, HourlyPricingStrategy
from ..domain.exceptions import (
    ResourceExhausted, ResourceNotOccupied, TicketAlreadyClosed, UnknownResource
)
from ..infrastructure.factories import TicketFactory


# ============================================================================
# SERVICE INTERFACES
# ============================================================================

@runtime_checkable
class Payer(Protocol):
    """Anything that can turn an amount into a Receipt"""

    def pay(self, amount: Decimal) -> Receipt:
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ParkingServiceError(Exception):
    """Base exception for parking service errors"""
    pass


class NoAvailableSpot(ParkingServiceError, ResourceExhausted):
    """Entry refused: the pool has no free spot of the vehicle's type"""

    def __init__(self, vehicle_type):
        ResourceExhausted.__init__(
            self, vehicle_type,
            f"No available spot for vehicle type '{getattr(vehicle_type, 'value', vehicle_type)}'"
        )


class VehicleAlreadyParked(ParkingServiceError):
    """Entry refused: the vehicle already holds an active ticket"""

    def __init__(self, license_plate: str, ticket_id: str):
        self.license_plate = license_plate
        self.ticket_id = ticket_id
        super().__init__(f"Vehicle {license_plate} is already parked (ticket {ticket_id})")


class PaymentProcessingError(ParkingServiceError):
    """The payment strategy failed; the ticket stays active and the spot held"""
    pass


class UnknownTicket(ParkingServiceError):
    """Exit refused: the ticket was not issued by this service"""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} is not active at this service")


# ============================================================================
# MAIN PARKING SERVICE
# ============================================================================

class ParkingService:
    """
    Application service for vehicle entry and exit

    The lot is passed in explicitly; the service never creates or looks up
    a global one.
    """

    def __init__(
        self,
        parking_lot: ParkingLot,
        pricing_strategy: Optional[PricingStrategy] = None,
        ticket_factory: Optional[TicketFactory] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.parking_lot = parking_lot
        self.pricing_strategy = pricing_strategy or HourlyPricingStrategy()
        self.ticket_factory = ticket_factory or TicketFactory()
        self.clock = clock or datetime.now

        # Active ticket registry
        self._active_tickets: Dict[str, Ticket] = {}
        self._tickets_by_plate: Dict[str, str] = {}
        self._registry_lock = threading.Lock()

        self.logger.info(f"ParkingService initialized for {parking_lot.name}")

    # ========================================================================
    # USE CASES
    # ========================================================================

    def enter(self, vehicle: Vehicle, entry_time: Optional[datetime] = None) -> Ticket:
        """
        Park a vehicle

        Use Case: Vehicle Entry
        1. Refuse a vehicle that already holds an active ticket
        2. Allocate a spot of the vehicle's type
        3. Issue and register an ACTIVE ticket

        Raises: NoAvailableSpot, VehicleAlreadyParked
        """
        plate = vehicle.license_plate.value
        self.logger.info(f"Processing entry for {vehicle}")

        with self._registry_lock:
            existing = self._tickets_by_plate.get(plate)
            if existing is not None:
                self.logger.warning(f"Vehicle {plate} already holds ticket {existing}")
                raise VehicleAlreadyParked(plate, existing)
            # Reserve the plate while the spot is being allocated
            self._tickets_by_plate[plate] = ""

        try:
            spot = self.parking_lot.allocate(vehicle.vehicle_type)
        except ResourceExhausted as e:
            with self._registry_lock:
                self._tickets_by_plate.pop(plate, None)
            self.logger.warning(f"Entry refused for {plate}: {e}")
            raise NoAvailableSpot(vehicle.vehicle_type) from e
        except Exception:
            with self._registry_lock:
                self._tickets_by_plate.pop(plate, None)
            raise

        ticket = self.ticket_factory.create(
            spot, vehicle=vehicle, entry_time=entry_time or self.clock()
        )

        with self._registry_lock:
            self._active_tickets[ticket.id] = ticket
            self._tickets_by_plate[plate] = ticket.id

        self.logger.info(f"Vehicle {plate} parked in spot {spot.id} (ticket {ticket.id})")
        return ticket

    def exit(
        self,
        ticket: Ticket,
        payment_strategy: Payer,
        exit_time: Optional[datetime] = None
    ) -> Receipt:
        """
        Check a vehicle out

        Use Case: Vehicle Exit
        1. Refuse tickets this service did not issue
        2. Close the ticket (fails if it is already closed)
        3. Check the spot is still held, then price the stay
        4. Take the payment
        5. Release the spot

        Steps 3 and 4 reopen the ticket on failure, so nothing is charged
        and the ticket can be exited again.

        Raises: TicketAlreadyClosed, UnknownTicket, ResourceNotOccupied,
                UnknownResource, PaymentProcessingError
        """
        self.logger.info(f"Processing exit for ticket {ticket.id}")

        with self._registry_lock:
            registered = self._active_tickets.get(ticket.id) is ticket
        if not registered:
            if ticket.is_closed:
                self.logger.warning(f"Ticket {ticket.id} is already closed")
                raise TicketAlreadyClosed(ticket.id)
            self.logger.warning(f"Ticket {ticket.id} was not issued by this service")
            raise UnknownTicket(ticket.id)

        try:
            recorded_exit = ticket.mark_exit(exit_time or self.clock())
        except TicketAlreadyClosed:
            self.logger.warning(f"Ticket {ticket.id} is already closed")
            raise

        try:
            self._check_spot_held(ticket)
            fee = self.pricing_strategy.calculate_fee(ticket.entry_time, recorded_exit)
        except Exception as e:
            ticket.reopen()
            self.logger.error(f"Exit of ticket {ticket.id} aborted before payment: {e}")
            raise

        self.logger.info(
            f"Ticket {ticket.id}: {ticket.duration_minutes} min, fee {fee}"
        )

        try:
            receipt = payment_strategy.pay(fee)
        except Exception as e:
            ticket.reopen()
            self.logger.error(f"Payment failed for ticket {ticket.id}: {e}", exc_info=True)
            raise PaymentProcessingError(f"Payment failed for ticket {ticket.id}: {e}") from e

        try:
            self.parking_lot.release(ticket.spot)
        finally:
            self._unregister(ticket)

        self.logger.info(
            f"Ticket {ticket.id} closed, spot {ticket.spot.id} released, "
            f"paid {receipt.format()} via {receipt.method}"
        )
        return receipt

    # ========================================================================
    # QUERIES
    # ========================================================================

    def calculate_fee(self, ticket: Ticket, at: Optional[datetime] = None) -> Decimal:
        """
        Fee of a closed ticket, or what an active ticket would pay at `at`
        (default: now)
        """
        end = ticket.exit_time if ticket.exit_time is not None else (at or self.clock())
        return self.pricing_strategy.calculate_fee(ticket.entry_time, end)

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        with self._registry_lock:
            return self._active_tickets.get(ticket_id)

    def active_tickets(self) -> List[Ticket]:
        with self._registry_lock:
            return list(self._active_tickets.values())

    def find_active_ticket(self, license_plate: str) -> Optional[Ticket]:
        plate = license_plate.strip().upper()
        with self._registry_lock:
            ticket_id = self._tickets_by_plate.get(plate)
            if not ticket_id:
                return None
            return self._active_tickets.get(ticket_id)

    def get_lot_status(self) -> Dict[str, Any]:
        status = self.parking_lot.get_status_report()
        status["active_tickets"] = len(self.active_tickets())
        return status

    # ========================================================================
    # INTERNAL HELPER METHODS
    # ========================================================================

    def _check_spot_held(self, ticket: Ticket) -> None:
        """Raises: UnknownResource or ResourceNotOccupied if the lot no longer holds the spot"""
        spot = ticket.spot
        if self.parking_lot.get_spot(spot.id) is not spot:
            raise UnknownResource(spot.id)
        if spot.available:
            raise ResourceNotOccupied(spot.id)

    def _unregister(self, ticket: Ticket) -> None:
        with self._registry_lock:
            self._active_tickets.pop(ticket.id, None)
            if ticket.vehicle is not None:
                plate = ticket.vehicle.license_plate.value
                if self._tickets_by_plate.get(plate) == ticket.id:
                    del self._tickets_by_plate[plate]
