"""
Stored-value wallet.

The wallet balance lives on accounts.User.wallet_balance. Every mutation
goes through WalletLedger, which locks the user row, enforces the
non-negative balance and writes a WalletTransaction keyed by a unique
reference so retries never move money twice.

Usage:
    from payments.wallet.services import wallet_ledger

    txn = wallet_ledger.reserve_and_debit(
        user_id=buyer.id,
        amount=Decimal("12000.00"),
        reference="WALLET-CART-20240101120000-ab12cd34",
    )
"""
