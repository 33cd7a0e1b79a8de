# File: parkpool/main.py
"""
Main application entry point for the ParkPool allocation service

Builds a lot from configuration, wires the observers, then drives a short
simulated session: a batch of vehicles enters, stays for the requested
number of minutes, pays and leaves. Receipts and the final lot status are
printed as JSON.
"""

from datetime import timedelta
from typing import List, Optional
import argparse
import json
import logging
import os
import sys

from .domain.models import Vehicle, VehicleType
from .domain.strategies import HourlyPricingStrategy
from .application.parking_service import ParkingService, NoAvailableSpot
from .application.dtos import TicketDTO, ReceiptDTO, ParkingLotStatusDTO
from .infrastructure.config import ParkingConfig
from .infrastructure.factories import ParkingLotFactory, PaymentStrategyFactory
from .infrastructure.messaging import ObserverBus, OccupancyCounterObserver


DEFAULT_LAYOUT = {
    VehicleType.COMPACT: 4,
    VehicleType.LARGE: 2,
    VehicleType.HANDICAPPED: 1,
}


def setup_logging(level: str = "INFO", log_dir: Optional[str] = "logs") -> logging.Logger:
    """Setup application logging configuration"""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_dir:
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(os.path.join(log_dir, 'parkpool.log')))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )
    return logging.getLogger("parkpool")


def load_config(args: argparse.Namespace) -> ParkingConfig:
    """Config file (or PARKPOOL_CONFIG), then environment, then command line"""
    config_path = args.config or os.environ.get("PARKPOOL_CONFIG")
    if config_path:
        config = ParkingConfig.from_yaml(config_path)
    else:
        config = ParkingConfig(layout=DEFAULT_LAYOUT)

    config = ParkingConfig.from_env(base=config)

    if args.strategy:
        config.allocation_strategy = args.strategy
    if args.seed is not None:
        config.random_seed = args.seed
    if args.log_level:
        config.log_level = args.log_level
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parkpool-demo",
        description="Simulate vehicles entering and leaving a parking lot"
    )
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument("--strategy", choices=["nearest", "random"], help="Spot allocation strategy")
    parser.add_argument("--seed", type=int, help="Seed for the random allocation strategy")
    parser.add_argument(
        "--payment", default="credit_card", choices=["credit_card", "cash"],
        help="Payment method used at exit"
    )
    parser.add_argument("--vehicles", type=int, default=3, help="Number of vehicles to park")
    parser.add_argument(
        "--vehicle-type", default="compact", choices=[t.value for t in VehicleType],
        help="Type of the simulated vehicles"
    )
    parser.add_argument("--minutes", type=int, default=125, help="Simulated length of stay")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")
    parser.add_argument("--log-dir", default="logs", help="Directory for the log file ('' to disable)")
    return parser


def run_demo(config: ParkingConfig, args: argparse.Namespace) -> int:
    logger = logging.getLogger("parkpool")

    observer_bus = ObserverBus()
    counter = OccupancyCounterObserver()
    observer_bus.subscribe(counter)

    lot = ParkingLotFactory().create_from_config(config, observer_bus=observer_bus)
    service = ParkingService(lot, pricing_strategy=HourlyPricingStrategy(config.rate_per_hour))
    payment = PaymentStrategyFactory().create_by_type(
        args.payment, currency=config.currency, with_logging=True
    )

    tickets = []
    for i in range(args.vehicles):
        vehicle = Vehicle(f"DEMO-{i + 1:03d}", VehicleType.parse(args.vehicle_type))
        try:
            ticket = service.enter(vehicle)
        except NoAvailableSpot as e:
            logger.warning(f"{vehicle.license_plate} turned away: {e}")
            continue
        tickets.append(ticket)
        print(TicketDTO.from_domain(ticket).to_json())

    for ticket in tickets:
        exit_time = ticket.entry_time + timedelta(minutes=args.minutes)
        receipt = service.exit(ticket, payment, exit_time=exit_time)
        print(ReceiptDTO.from_domain(receipt).to_json())

    status = ParkingLotStatusDTO.from_report(service.get_lot_status())
    print(status.to_json(indent=2))
    print(json.dumps(counter.snapshot(), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        parser.error(f"Invalid configuration: {e}")

    logger = setup_logging(config.log_level, args.log_dir or None)
    logger.info("Starting ParkPool demo...")
    return run_demo(config, args)


if __name__ == "__main__":
    sys.exit(main())
