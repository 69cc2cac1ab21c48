"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    CommissionStatus,
    EscrowStatus,
    PaymentKind,
    PaymentStatus,
    ReleaseReason,
    SettlementFlow,
    WebhookEventStatus,
)

__all__ = [
    "CommissionStatus",
    "EscrowStatus",
    "PaymentKind",
    "PaymentStatus",
    "ReleaseReason",
    "SettlementFlow",
    "WebhookEventStatus",
]
