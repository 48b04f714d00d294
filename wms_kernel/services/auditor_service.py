"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates immutable, hash-chained audit events for the significant state
    changes of the warehouse: catalog edits, direct receipts and issues,
    order and picking transitions, bin assignments.  Provides chain
    validation for tamper detection.

Architecture position:
    Kernel > Services -- imperative shell.  Injected into CatalogService,
    StockLedgerService, OrderService, PickingService and TopologyService by
    WarehouseOrchestrator when the ``audit`` capability is enabled.  Those
    services record through ``record()`` inside their own transaction.

Invariants enforced:
    - seq comes from SequenceService's locked counter row.  The same lock
      serializes writers, so ``prev_hash`` is always the true predecessor.
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash).
    - Append-only: AuditEvent rows are guarded by ORM listeners and, on
      PostgreSQL, by triggers.

Failure modes:
    - AuditChainBrokenError from validate_chain() when a stored hash or a
      prev_hash link does not match.
"""

import json
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.domain.dtos import AuditEventInfo
from wms_kernel.exceptions import AuditChainBrokenError
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit_event import AuditAction, AuditEvent
from wms_kernel.services.sequence_service import SequenceService
from wms_kernel.utils.hashing import canonicalize_json, hash_audit_event, hash_payload

logger = get_logger("services.auditor")

DEFAULT_ACTOR = "system"
DEFAULT_RECENT_LIMIT = 20


class AuditorService:
    """
    Service for the audit trail.

    Contract:
        ``record()`` appends one event in the caller's transaction and
        returns it.  Rolling back the transaction removes the event and
        returns its sequence number.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT decide what is audited; callers do.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        actor: str = DEFAULT_ACTOR,
    ):
        """
        Args:
            session: SQLAlchemy session.
            clock: Clock for occurred_at. Defaults to SystemClock.
            actor: Who the recorded actions are attributed to.
        """
        self._session = session
        self._clock = clock or SystemClock()
        self._actor = (actor or "").strip() or DEFAULT_ACTOR
        self._sequence_service = SequenceService(session)

    @property
    def actor(self) -> str:
        return self._actor

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def record(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        entity_ref: str = "",
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Append an audit event linked to its predecessor.

        Postconditions:
            - ``event.seq`` is greater than every earlier seq.
            - ``event.prev_hash`` equals the previous event's ``hash``
              (None for the first event).
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        # Round-trip through canonical JSON so the stored payload hashes
        # to the same value when validate_chain() reads it back.
        payload_data = json.loads(canonicalize_json(payload or {}))
        payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_ref=entity_ref,
            action=action.value,
            actor=self._actor,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "audit_action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Recompute every hash in seq order.

        Raises:
            AuditChainBrokenError: at the first event whose hash or
                prev_hash link does not match.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical(
                "audit_chain_broken",
                extra={"audit_event_id": str(events[0].id), "seq": events[0].seq},
            )
            raise AuditChainBrokenError(str(events[0].id), "None", events[0].prev_hash)

        for i, event in enumerate(events):
            recomputed_payload_hash = hash_payload(event.payload or {})
            if recomputed_payload_hash != event.payload_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "seq": event.seq},
                )
                raise AuditChainBrokenError(
                    str(event.id), recomputed_payload_hash, event.payload_hash
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "seq": event.seq},
                )
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            if i > 0 and event.prev_hash != events[i - 1].hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "seq": event.seq},
                )
                raise AuditChainBrokenError(
                    str(event.id), events[i - 1].hash, event.prev_hash or "None"
                )

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    # Queries

    @staticmethod
    def _to_info(event: AuditEvent) -> AuditEventInfo:
        return AuditEventInfo(
            seq=event.seq,
            action=event.action,
            entity_type=event.entity_type,
            entity_ref=event.entity_ref,
            actor=event.actor,
            occurred_at=event.occurred_at,
            payload=event.payload,
            hash=event.hash,
        )

    def recent_events(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[AuditEventInfo]:
        """Most recent events first."""
        if limit is None or limit <= 0:
            limit = DEFAULT_RECENT_LIMIT
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(limit)
        ).scalars().all()
        return [self._to_info(e) for e in events]

    def events_for(self, entity_type: str, entity_id: UUID) -> list[AuditEventInfo]:
        """All events of one entity, oldest first."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()
        return [self._to_info(e) for e in events]
