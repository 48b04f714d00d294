"""
Warehouse Kernel

An append-only stock ledger with an order and picking state machine:
- Quantities derived from an immutable movement log
- Atomic order posting (all movements or none)
- Picklists generated from posted orders, one task per line
- Full auditability via hash chain
"""

__version__ = "0.1.0"
