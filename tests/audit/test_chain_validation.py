"""
Audit chain validation tests.

Verifies:
- Every audited operation appends one event with seq = previous + 1
- Each event links to its predecessor's hash
- Tampering with a stored payload or hash is detected
- Events written in a rolled-back savepoint disappear with it
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import select, update

from wms_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from wms_kernel.exceptions import (
    AuditChainBrokenError,
    ImmutabilityViolationError,
    InsufficientStockError,
)
from wms_kernel.models.audit_event import AuditAction, AuditEvent
from wms_kernel.services.sequence_service import SequenceService
from wms_kernel.utils.hashing import canonicalize_json, hash_audit_event, hash_payload


@contextmanager
def disabled_immutability():
    """Switch off the ORM listeners to simulate tampering."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


def _events(session):
    return session.execute(select(AuditEvent).order_by(AuditEvent.seq)).scalars().all()


class TestHashing:
    def test_canonical_json_ignores_key_order(self):
        assert canonicalize_json({"b": 1, "a": 2}) == canonicalize_json({"a": 2, "b": 1})
        assert hash_payload({"b": 1, "a": 2}) == hash_payload({"a": 2, "b": 1})

    def test_genesis_differs_from_linked(self):
        genesis = hash_audit_event("Item", "x", "item_created", "p", None)
        linked = hash_audit_event("Item", "x", "item_created", "p", "abc")
        assert genesis != linked


class TestChain:
    def test_events_are_sequential_and_linked(self, session, posted_outbound, auditor):
        events = _events(session)

        assert [e.seq for e in events] == list(range(1, len(events) + 1))
        assert events[0].prev_hash is None
        for previous, current in zip(events, events[1:]):
            assert current.prev_hash == previous.hash
        assert auditor.validate_chain() is True

    def test_actor_is_recorded(self, session, warehouse):
        assert {e.actor for e in _events(session)} == {"tester"}

    def test_empty_chain_is_valid(self, auditor):
        assert auditor.validate_chain() is True

    def test_sequence_counter_tracks_last_seq(self, session, warehouse):
        last = _events(session)[-1].seq
        assert SequenceService(session).current_value(SequenceService.AUDIT_EVENT) == last

    def test_rolled_back_savepoint_discards_events(self, session, stocked, orders, auditor):
        orders.create_order("O1", "OUTBOUND")
        orders.add_line("O1", "SKU1", "L1", 1)
        orders.add_line("O1", "SKU1", "L1", 100)
        count = len(_events(session))

        with pytest.raises(InsufficientStockError):
            orders.post_order("O1")

        assert len(_events(session)) == count
        orders.add_line("O1", "SKU2", "L1", 1)
        assert auditor.validate_chain() is True

    def test_payload_round_trips(self, session, warehouse, ledger):
        ledger.record_in("SKU1", "L1", 3, "PO-1")
        event = _events(session)[-1]

        assert event.action == AuditAction.STOCK_RECEIVED.value
        assert event.entity_ref == "SKU1"
        assert event.payload == {"location_code": "L1", "quantity": 3, "reference": "PO-1"}


class TestQueries:
    def test_recent_events_newest_first(self, session, warehouse, auditor):
        recent = auditor.recent_events(2)
        assert [e.action for e in recent] == ["location_created", "location_created"]
        assert recent[0].seq > recent[1].seq

    def test_events_for_entity(self, warehouse, orders, auditor):
        order = orders.create_order("O1", "INBOUND")
        orders.add_line("O1", "SKU1", "L1", 1)
        orders.cancel_order("O1")

        actions = [e.action for e in auditor.events_for("Order", order.id)]
        assert actions == ["order_created", "order_line_added", "order_cancelled"]


class TestTamperDetection:
    def test_orm_update_is_blocked(self, session, warehouse):
        event = _events(session)[0]
        event.actor = "mallory"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_orm_delete_is_blocked(self, session, warehouse):
        session.delete(_events(session)[0])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_altered_payload_is_detected(self, session, db_engine, warehouse, auditor):
        if db_engine.dialect.name == "postgresql":
            pytest.skip("database triggers block the tampering itself")
        target = _events(session)[1]

        with disabled_immutability():
            session.execute(
                update(AuditEvent)
                .where(AuditEvent.id == target.id)
                .values(payload={"name": "forged"})
            )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain()
        assert exc_info.value.audit_event_id == str(target.id)

    def test_altered_hash_breaks_next_link(self, session, db_engine, warehouse, auditor):
        if db_engine.dialect.name == "postgresql":
            pytest.skip("database triggers block the tampering itself")
        events = _events(session)
        target = events[1]

        with disabled_immutability():
            session.execute(
                update(AuditEvent)
                .where(AuditEvent.id == target.id)
                .values(hash="0" * 64)
            )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor.validate_chain()

    def test_broken_chain_is_logged(self, captured_logs, session, db_engine, warehouse, auditor):
        if db_engine.dialect.name == "postgresql":
            pytest.skip("database triggers block the tampering itself")
        target = _events(session)[0]
        with disabled_immutability():
            session.execute(
                update(AuditEvent)
                .where(AuditEvent.id == target.id)
                .values(prev_hash="f" * 64)
            )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor.validate_chain()

        records = [r for r in captured_logs() if r["message"] == "audit_chain_broken"]
        assert records and records[0]["level"] == "CRITICAL"
