#!/usr/bin/env python3
"""
Parking Service Integration Tests

End-to-end entry/exit flows through ParkingService with a real
ParkingLot, ObserverBus and payment strategies.
"""

import unittest
import sys
import threading
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock, patch

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent.parent))

from parkpool.domain.models import Vehicle, VehicleType, Receipt
from parkpool.domain.payments import (
    CashPayment, CreditCardPayment, LoggingPaymentDecorator, PaymentProcessor
)
from parkpool.domain.exceptions import (
    ResourceExhausted, ResourceNotOccupied, TicketAlreadyClosed, UnknownResource
)
from parkpool.application.parking_service import (
    ParkingService, NoAvailableSpot, VehicleAlreadyParked, PaymentProcessingError,
    UnknownTicket
)
from parkpool.infrastructure.factories import ParkingLotFactory
from parkpool.infrastructure.messaging import ObserverBus, OccupancyCounterObserver


T0 = datetime(2026, 1, 5, 9, 0, 0)


class CountingCashPayment(CashPayment):
    """Cash payment that counts how often it was charged"""

    def __init__(self):
        super().__init__()
        self.charges = []
        self._lock = threading.Lock()

    def pay(self, amount):
        with self._lock:
            self.charges.append(amount)
        return super().pay(amount)


class ParkingServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.bus = ObserverBus()
        self.counter = OccupancyCounterObserver()
        self.bus.subscribe(self.counter)
        self.lot = ParkingLotFactory().create(
            layout={VehicleType.COMPACT: 2, VehicleType.LARGE: 1, VehicleType.HANDICAPPED: 1},
            observer_bus=self.bus,
            name="Integration Lot",
        )
        self.service = ParkingService(self.lot)


class TestEntryAndExit(ParkingServiceTestCase):
    """Happy-path entry and exit"""

    def test_enter_issues_active_ticket(self):
        vehicle = Vehicle("ABC-123", VehicleType.COMPACT)

        ticket = self.service.enter(vehicle, entry_time=T0)

        self.assertTrue(ticket.is_active)
        self.assertEqual(ticket.spot.id, "C1")
        self.assertEqual(ticket.vehicle, vehicle)
        self.assertEqual(ticket.entry_time, T0)
        self.assertFalse(ticket.spot.available)
        self.assertIs(self.service.get_ticket(ticket.id), ticket)

    def test_fee_table(self):
        test_cases = [
            # (minutes parked, expected fee)
            (59, Decimal("5")),
            (60, Decimal("5")),
            (61, Decimal("10")),
            (125, Decimal("15")),
        ]

        for minutes, expected in test_cases:
            ticket = self.service.enter(Vehicle("FEE-01", VehicleType.LARGE), entry_time=T0)
            receipt = self.service.exit(
                ticket, CashPayment(), exit_time=T0 + timedelta(minutes=minutes)
            )
            self.assertEqual(receipt.amount, expected, f"{minutes} minutes")

    def test_exit_closes_ticket_and_frees_spot(self):
        ticket = self.service.enter(Vehicle("ABC-123", "handicapped"), entry_time=T0)

        receipt = self.service.exit(
            ticket, CreditCardPayment(), exit_time=T0 + timedelta(minutes=30)
        )

        self.assertEqual(receipt.amount, Decimal("5"))
        self.assertEqual(receipt.method, "CreditCard")
        self.assertTrue(ticket.is_closed)
        self.assertEqual(ticket.exit_time, T0 + timedelta(minutes=30))
        self.assertTrue(ticket.spot.available)
        self.assertIsNone(self.service.get_ticket(ticket.id))
        self.assertIsNone(self.service.find_active_ticket("ABC-123"))

    def test_decorated_payment_gives_same_receipt(self):
        first = self.service.enter(Vehicle("ONE-1", VehicleType.COMPACT), entry_time=T0)
        second = self.service.enter(Vehicle("TWO-2", VehicleType.COMPACT), entry_time=T0)
        leave_at = T0 + timedelta(minutes=90)

        plain = self.service.exit(first, CashPayment(), exit_time=leave_at)
        with self.assertLogs("LoggingPaymentDecorator", level="INFO"):
            logged = self.service.exit(second, LoggingPaymentDecorator(CashPayment()), exit_time=leave_at)

        self.assertEqual(plain, logged)

    def test_exit_through_payment_processor(self):
        ticket = self.service.enter(Vehicle("PRO-01", VehicleType.COMPACT), entry_time=T0)

        receipt = self.service.exit(
            ticket, PaymentProcessor(CashPayment()), exit_time=T0 + timedelta(minutes=45)
        )

        self.assertEqual(receipt.amount, Decimal("5"))
        self.assertEqual(receipt.method, "Cash")
        self.assertTrue(ticket.spot.available)

    def test_clock_is_used_when_times_are_omitted(self):
        times = iter([T0, T0 + timedelta(minutes=61)])
        service = ParkingService(self.lot, clock=lambda: next(times))

        ticket = service.enter(Vehicle("CLK-01", VehicleType.COMPACT))
        receipt = service.exit(ticket, CashPayment())

        self.assertEqual(ticket.entry_time, T0)
        self.assertEqual(receipt.amount, Decimal("10"))

    def test_calculate_fee_for_active_ticket(self):
        ticket = self.service.enter(Vehicle("EST-01", VehicleType.COMPACT), entry_time=T0)

        self.assertEqual(self.service.calculate_fee(ticket, at=T0 + timedelta(minutes=130)), Decimal("15"))
        self.assertTrue(ticket.is_active)

    def test_observer_sees_allocation_then_release(self):
        ticket = self.service.enter(Vehicle("OBS-01", VehicleType.LARGE), entry_time=T0)
        self.assertEqual(self.counter.occupied(VehicleType.LARGE), 1)

        self.service.exit(ticket, CashPayment(), exit_time=T0 + timedelta(minutes=5))

        self.assertEqual(self.counter.allocations(VehicleType.LARGE), 1)
        self.assertEqual(self.counter.releases(VehicleType.LARGE), 1)
        self.assertEqual(self.counter.occupied(), 0)

    def test_lot_status_includes_active_tickets(self):
        self.service.enter(Vehicle("STA-01", VehicleType.COMPACT), entry_time=T0)

        status = self.service.get_lot_status()

        self.assertEqual(status["active_tickets"], 1)
        self.assertEqual(status["occupied_spots"], 1)
        self.assertEqual(status["total_spots"], 4)


class TestEntryRefusals(ParkingServiceTestCase):
    """Entry failures"""

    def test_no_available_spot(self):
        self.service.enter(Vehicle("BIG-01", VehicleType.LARGE), entry_time=T0)

        with self.assertRaises(NoAvailableSpot) as ctx:
            self.service.enter(Vehicle("BIG-02", VehicleType.LARGE), entry_time=T0)

        self.assertIsInstance(ctx.exception, ResourceExhausted)
        self.assertIs(ctx.exception.vehicle_type, VehicleType.LARGE)
        self.assertEqual(len(self.service.active_tickets()), 1)
        self.assertIsNone(self.service.find_active_ticket("BIG-02"))

    def test_other_types_unaffected_by_exhaustion(self):
        self.service.enter(Vehicle("BIG-01", VehicleType.LARGE), entry_time=T0)

        ticket = self.service.enter(Vehicle("SML-01", VehicleType.COMPACT), entry_time=T0)
        self.assertEqual(ticket.spot.spot_type, VehicleType.COMPACT)

    def test_vehicle_cannot_park_twice(self):
        first = self.service.enter(Vehicle("DUP-01", VehicleType.COMPACT), entry_time=T0)

        with self.assertRaises(VehicleAlreadyParked) as ctx:
            self.service.enter(Vehicle("dup-01", VehicleType.COMPACT), entry_time=T0)

        self.assertEqual(ctx.exception.ticket_id, first.id)
        self.assertEqual(self.lot.available_count(VehicleType.COMPACT), 1)

    def test_vehicle_can_return_after_exit(self):
        ticket = self.service.enter(Vehicle("RET-01", VehicleType.COMPACT), entry_time=T0)
        self.service.exit(ticket, CashPayment(), exit_time=T0 + timedelta(minutes=10))

        again = self.service.enter(Vehicle("RET-01", VehicleType.COMPACT), entry_time=T0 + timedelta(hours=1))
        self.assertIs(self.service.find_active_ticket("RET-01"), again)


class TestExitFailures(ParkingServiceTestCase):
    """Double exit and payment failure"""

    def test_double_exit_charges_and_releases_once(self):
        payment = CountingCashPayment()
        ticket = self.service.enter(Vehicle("TWICE-1", VehicleType.COMPACT), entry_time=T0)
        self.service.exit(ticket, payment, exit_time=T0 + timedelta(minutes=20))

        with self.assertRaises(TicketAlreadyClosed):
            self.service.exit(ticket, payment, exit_time=T0 + timedelta(minutes=40))

        self.assertEqual(payment.charges, [Decimal("5")])
        self.assertEqual(self.counter.releases(), 1)
        self.assertEqual(ticket.exit_time, T0 + timedelta(minutes=20))

    def test_failed_payment_keeps_ticket_active(self):
        ticket = self.service.enter(Vehicle("FAIL-1", VehicleType.LARGE), entry_time=T0)
        declined = Mock()
        declined.pay.side_effect = RuntimeError("card declined")

        with self.assertRaises(PaymentProcessingError):
            self.service.exit(ticket, declined, exit_time=T0 + timedelta(minutes=75))

        declined.pay.assert_called_once_with(Decimal("10"))
        self.assertTrue(ticket.is_active)
        self.assertIsNone(ticket.exit_time)
        self.assertFalse(ticket.spot.available)
        self.assertIs(self.service.get_ticket(ticket.id), ticket)

        receipt = self.service.exit(ticket, CashPayment(), exit_time=T0 + timedelta(minutes=80))
        self.assertEqual(receipt.amount, Decimal("10"))
        self.assertTrue(ticket.spot.available)

    def test_exit_refused_when_spot_was_released_elsewhere(self):
        payment = CountingCashPayment()
        ticket = self.service.enter(Vehicle("ABC-1", VehicleType.COMPACT), entry_time=T0)
        self.lot.release(ticket.spot)

        with self.assertRaises(ResourceNotOccupied):
            self.service.exit(ticket, payment, exit_time=T0 + timedelta(minutes=30))

        self.assertEqual(payment.charges, [])
        self.assertTrue(ticket.is_active)
        self.assertIs(self.service.find_active_ticket("ABC-1"), ticket)

    def test_release_failure_after_payment_still_unregisters(self):
        ticket = self.service.enter(Vehicle("ABC-2", VehicleType.COMPACT), entry_time=T0)

        with patch.object(self.lot, "release", side_effect=UnknownResource(ticket.spot.id)):
            with self.assertRaises(UnknownResource):
                self.service.exit(ticket, CashPayment(), exit_time=T0 + timedelta(minutes=30))

        self.assertTrue(ticket.is_closed)
        self.assertIsNone(self.service.get_ticket(ticket.id))
        again = self.service.enter(Vehicle("ABC-2", VehicleType.COMPACT), entry_time=T0 + timedelta(hours=1))
        self.assertIs(self.service.find_active_ticket("ABC-2"), again)

    def test_pricing_failure_keeps_ticket_active(self):
        pricing = Mock()
        pricing.calculate_fee.side_effect = ArithmeticError("bad rate table")
        service = ParkingService(self.lot, pricing_strategy=pricing)
        payment = CountingCashPayment()
        ticket = service.enter(Vehicle("PRC-01", VehicleType.LARGE), entry_time=T0)

        with self.assertRaises(ArithmeticError):
            service.exit(ticket, payment, exit_time=T0 + timedelta(minutes=30))

        self.assertEqual(payment.charges, [])
        self.assertTrue(ticket.is_active)
        self.assertFalse(ticket.spot.available)
        self.assertIs(service.get_ticket(ticket.id), ticket)

    def test_concurrent_exit_of_one_ticket_succeeds_once(self):
        payment = CountingCashPayment()
        ticket = self.service.enter(Vehicle("RACE-1", VehicleType.COMPACT), entry_time=T0)
        barrier = threading.Barrier(8)
        receipts, rejected = [], []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            try:
                receipt = self.service.exit(ticket, payment, exit_time=T0 + timedelta(minutes=61))
            except TicketAlreadyClosed:
                with lock:
                    rejected.append(1)
                return
            with lock:
                receipts.append(receipt)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        self.assertEqual(len(receipts), 1)
        self.assertEqual(len(rejected), 7)
        self.assertEqual(payment.charges, [Decimal("10")])
        self.assertEqual(self.counter.releases(), 1)


class TestSeparateServices(ParkingServiceTestCase):
    """Tickets belong to the service that issued them"""

    def test_ticket_cannot_exit_at_another_service(self):
        other_gate = ParkingService(self.lot)
        ticket = self.service.enter(Vehicle("GATE-1", VehicleType.COMPACT), entry_time=T0)

        with self.assertRaises(UnknownTicket) as ctx:
            other_gate.exit(ticket, CashPayment(), exit_time=T0 + timedelta(minutes=20))

        self.assertEqual(ctx.exception.ticket_id, ticket.id)
        self.assertTrue(ticket.is_active)
        self.assertFalse(ticket.spot.available)

        receipt = self.service.exit(ticket, CashPayment(), exit_time=T0 + timedelta(minutes=20))
        self.assertEqual(receipt.amount, Decimal("5"))
        self.assertEqual(self.service.active_tickets(), [])


class TestConcurrentEntry(ParkingServiceTestCase):
    """Many vehicles entering at once"""

    def test_each_spot_goes_to_one_vehicle(self):
        barrier = threading.Barrier(10)
        tickets, refused = [], []
        lock = threading.Lock()

        def arrive(number):
            barrier.wait()
            try:
                ticket = self.service.enter(Vehicle(f"CAR-{number:02d}", VehicleType.COMPACT))
            except NoAvailableSpot:
                with lock:
                    refused.append(number)
                return
            with lock:
                tickets.append(ticket)

        threads = [threading.Thread(target=arrive, args=(n,)) for n in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        self.assertEqual(len(tickets), 2)
        self.assertEqual(len(refused), 8)
        self.assertEqual({ticket.spot.id for ticket in tickets}, {"C1", "C2"})
        self.assertEqual(len(self.service.active_tickets()), 2)


if __name__ == '__main__':
    unittest.main(verbosity=2)
