"""
Printflow Kernel

The workflow core of the print/signage production backend:
- Order and task state machines (design, print, delivery, stock)
- Role-set based authorization guards
- Optimistically versioned persistence
- Structured logging and typed errors
"""

__version__ = "0.1.0"
