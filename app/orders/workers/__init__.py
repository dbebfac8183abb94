"""
Background workers for the orders app.

Workers:
    escrow_sweeper: Auto-release of orders whose inspection period ended
"""

from orders.workers.escrow_sweeper import process_expired_escrows, release_expired_escrow

__all__ = ["process_expired_escrows", "release_expired_escrow"]
