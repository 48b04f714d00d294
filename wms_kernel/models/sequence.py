"""
Module: wms_kernel.models.sequence
Responsibility: Named monotonic counters (one row per sequence).
Architecture position: Kernel > Models.  Used only by SequenceService.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from wms_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter row.

    Row-level locking (SELECT ... FOR UPDATE) keeps values monotonic under
    concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
