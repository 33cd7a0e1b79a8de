# File: parkpool/domain/payments.py
"""
Payment strategies and decorators

A payment strategy turns a fee into a Receipt. Decorators wrap any
strategy (or another decorator) through the same pay() capability and add
behaviour around it without changing the Receipt that comes back.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union
from decimal import Decimal
import logging

from .models import Receipt


Amount = Union[Decimal, int, float, str]


def _to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


# ============================================================================
# PAYMENT STRATEGY INTERFACE
# ============================================================================

class PaymentStrategy(ABC):
    """
    Abstract base class for payment strategies
    pay() must return a Receipt for the exact amount it was given
    """

    method: str = ""

    def __init__(self, currency: str = "USD"):
        self.currency = currency
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def pay(self, amount: Amount) -> Receipt:
        """Charge the amount and return the receipt"""
        pass

    def __str__(self) -> str:
        return f"{self.method} Payment"


# ============================================================================
# CONCRETE PAYMENT STRATEGIES
# ============================================================================

class CreditCardPayment(PaymentStrategy):
    """Strategy: pay by credit card"""

    method = "CreditCard"

    def pay(self, amount: Amount) -> Receipt:
        receipt = Receipt(_to_decimal(amount), self.method, self.currency)
        self.logger.info(f"Paid {receipt.format()} via Credit Card")
        return receipt


class CashPayment(PaymentStrategy):
    """Strategy: pay in cash"""

    method = "Cash"

    def pay(self, amount: Amount) -> Receipt:
        receipt = Receipt(_to_decimal(amount), self.method, self.currency)
        self.logger.info(f"Paid {receipt.format()} via Cash")
        return receipt


# ============================================================================
# DECORATORS
# ============================================================================

class PaymentDecorator(PaymentStrategy):
    """
    Base decorator: holds a wrapped strategy and forwards pay() to it
    Subclasses add their side effect around the delegation
    """

    def __init__(self, wrapped: PaymentStrategy):
        super().__init__(currency=getattr(wrapped, "currency", "USD"))
        self._wrapped = wrapped

    @property
    def wrapped(self) -> PaymentStrategy:
        return self._wrapped

    @property
    def method(self) -> str:
        return self._wrapped.method

    def pay(self, amount: Amount) -> Receipt:
        return self._wrapped.pay(amount)


class LoggingPaymentDecorator(PaymentDecorator):
    """
    Decorator: log every payment before delegating
    The receipt from the wrapped strategy is returned untouched
    """

    def __init__(self, wrapped: PaymentStrategy, logger: Optional[logging.Logger] = None):
        super().__init__(wrapped)
        if logger is not None:
            self.logger = logger

    def pay(self, amount: Amount) -> Receipt:
        self.logger.info(f"Logging payment of ${_to_decimal(amount):.2f} via {self.method}")
        return self._wrapped.pay(amount)


# ============================================================================
# PAYMENT PROCESSOR
# ============================================================================

class PaymentProcessor:
    """
    Runs payments through a strategy chosen by the caller
    The processor depends on the PaymentStrategy abstraction only
    """

    def __init__(self, strategy: PaymentStrategy):
        self.strategy = strategy

    def process(self, amount: Amount) -> Receipt:
        return self.strategy.pay(amount)

    def pay(self, amount: Amount) -> Receipt:
        return self.process(amount)
