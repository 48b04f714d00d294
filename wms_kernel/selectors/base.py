"""
Module: wms_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the query side of the kernel: stock levels, movement
    history, order and picklist projections, bin lookups.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/dtos.py and exceptions.py.  MUST NOT import from services/ or
    outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Selectors return frozen DTOs or plain values, never ORM instances.
    - The caller owns the session and its transaction.

Audit relevance:
    Stock levels are never stored.  Every balance a selector returns is
    summed from stock_movements at query time.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from wms_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller, performs read-only queries and
        returns DTOs or computed values.
    """

    def __init__(self, session: Session):
        self.session = session
