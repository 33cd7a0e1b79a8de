# File: parkpool/domain/exceptions.py
"""
Domain exceptions for the ParkPool allocation service

None of these are retried internally. ResourceExhausted is an expected
business outcome; the others signal caller or configuration bugs.
"""


class ParkingDomainError(Exception):
    """Base exception for domain errors"""
    pass


class ResourceExhausted(ParkingDomainError):
    """No free spot of the requested type"""

    def __init__(self, vehicle_type, message=None):
        self.vehicle_type = vehicle_type
        super().__init__(message or f"No available spot for vehicle type '{_label(vehicle_type)}'")


class ResourceNotOccupied(ParkingDomainError):
    """Release of a spot that is already available"""

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"Spot {spot_id} is not occupied")


class SpotAlreadyOccupied(ParkingDomainError):
    """Occupy of a spot that is already taken"""

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"Spot {spot_id} is already occupied")


class DuplicateResourceId(ParkingDomainError):
    """A spot with the same id is already registered in the lot"""

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"Spot id {spot_id} is already registered")


class UnknownResource(ParkingDomainError):
    """The spot does not belong to this lot"""

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"Spot {spot_id} does not belong to this parking lot")


class TicketAlreadyClosed(ParkingDomainError):
    """Exit requested for a ticket that was already exited"""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} is already closed")


def _label(vehicle_type) -> str:
    return getattr(vehicle_type, "value", str(vehicle_type))
