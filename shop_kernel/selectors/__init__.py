"""Read-only query selectors."""

from shop_kernel.selectors.transaction_selector import TransactionSelector

__all__ = ["TransactionSelector"]
