"""
Shop Kernel

Shared foundation for the shop-management back office:
- Structured logging and typed errors
- Shift, ledger transaction and staff records over SQLAlchemy
- Money and time primitives with explicit rounding
- Batched writes that commit independently
"""

__version__ = "0.1.0"
