"""
Tests for payments app.

This package contains test modules for:
- test_fees.py: Service fee tiers and rounding
- test_wallet.py: WalletLedger debits, credits and idempotency
- test_paystack_adapter.py: Gateway calls and webhook signatures
- test_models.py / test_repositories.py: Payment intent log
- test_orchestrator.py: Wallet, card and hybrid checkouts and webhook events
- test_views.py / test_tasks.py: API endpoints and Celery tasks

Usage:
    pytest payments/tests/
    pytest payments/tests/test_orchestrator.py
"""
