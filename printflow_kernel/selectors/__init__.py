"""Selectors for the printflow kernel (read side)."""

from printflow_kernel.selectors.order_selector import OrderSelector

__all__ = [
    "OrderSelector",
]
