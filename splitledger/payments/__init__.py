"""Payment application package."""

from splitledger.payments.application import PaymentApplication

__all__ = ["PaymentApplication"]
