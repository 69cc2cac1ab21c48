"""
Payment domain models.

- PaymentRecord: a guest's charge and its escrow state
- CommissionTransaction: platform commission and host payout for one payment
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.commission_transaction import CommissionTransaction
from payments.models.payment_record import PaymentRecord
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "CommissionTransaction",
    "PaymentRecord",
    "WebhookEvent",
]
