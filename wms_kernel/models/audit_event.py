"""
Module: wms_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM + DB trigger).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash),
      validated by AuditorService.validate_chain().
    - seq is monotonically increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a mismatch.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from wms_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable warehouse actions."""

    # Catalog
    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"
    LOCATION_CREATED = "location_created"
    LOCATION_DELETED = "location_deleted"

    # Ledger (direct adjustments; postings are audited on the order)
    STOCK_RECEIVED = "stock_received"
    STOCK_ISSUED = "stock_issued"

    # Orders
    ORDER_CREATED = "order_created"
    ORDER_LINE_ADDED = "order_line_added"
    ORDER_POSTED = "order_posted"
    ORDER_CANCELLED = "order_cancelled"

    # Picking
    PICK_LIST_CREATED = "pick_list_created"
    PICK_LIST_STARTED = "pick_list_started"
    PICK_TASK_PICKED = "pick_task_picked"
    PICK_LIST_DONE = "pick_list_done"

    # Topology
    ZONE_CREATED = "zone_created"
    ZONE_DELETED = "zone_deleted"
    BIN_CREATED = "bin_created"
    BIN_DELETED = "bin_deleted"
    BIN_ITEM_ASSIGNED = "bin_item_assigned"
    BIN_ITEM_UNASSIGNED = "bin_item_unassigned"

    # Tracking
    TRACKING_SET = "tracking_set"
    TRACKING_CLEARED = "tracking_cleared"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Guarantees:
        - seq is unique and monotonically increasing.
        - prev_hash is None only for the genesis event.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Human-readable key of the entity (SKU, order number, bin code)
    entity_ref: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor: Mapped[str] = mapped_column(String(100), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.seq} {self.action} on {self.entity_type}:{self.entity_ref}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
