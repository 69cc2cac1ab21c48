"""
Tests for payments app.

This package contains test modules for:
- test_commission.py: commission split arithmetic
- test_store.py: EscrowStore reads and conditional writes
- test_checkout.py / test_confirmation.py: checkout session lifecycle
- test_escrow_release.py / test_escrow_refund.py: escrow outcomes
- test_release_scheduler.py / test_reconciliation.py: background workers
- test_views.py / test_integration.py: HTTP endpoints and full journeys

Usage:
    pytest payments/tests/
    pytest payments/tests/test_escrow_release.py
"""
