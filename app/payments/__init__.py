"""
Payments app: checkout payments and the wallet ledger.

This app handles:
- Fee calculation for a cart checkout
- Wallet, card and hybrid (wallet + card) payments
- The payment intent log and card gateway webhooks
- Atomic, idempotent wallet debits and credits

Related apps:
    - accounts: User model holding the wallet balance
    - orders: Orders and escrow created once a payment is confirmed

Usage:
    from payments.services import PaymentOrchestrator

    result = PaymentOrchestrator().pay_cart(params, method="wallet")
"""
