"""
Picking workflow tests.

Verifies:
- Only POSTED orders get a picklist, at most one per order
- One OPEN task per order line, with the line's quantity
- CREATED -> IN_PROGRESS -> DONE, tasks OPEN -> PICKED
- A picklist cannot finish while a task is OPEN
- Bin suggestion: a bin only when exactly one candidate exists
- Picking never writes stock movements
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from wms_kernel.exceptions import (
    InvalidStatusTransitionError,
    OrderNotFoundError,
    PickListExistsError,
    PickListNotFoundError,
    PickTaskNotFoundError,
    PickTasksOpenError,
)
from wms_kernel.models.stock_movement import StockMovement
from wms_kernel.selectors.picklist_selector import NO_BIN
from wms_kernel.services.picking_service import PickingService


def _movement_count(session) -> int:
    return session.execute(select(func.count()).select_from(StockMovement)).scalar_one()


class TestCreatePickList:
    def test_one_task_per_line(self, posted_outbound, picking, pick_lists):
        info = picking.create_pick_list("O1")

        assert info.status == "CREATED"
        assert info.order_number == "O1"
        assert len(info.task_ids) == 2

        view = pick_lists.show_pick_list(info.id)
        assert [(t.sku, t.quantity, t.status) for t in view.tasks] == [
            ("SKU1", 3, "OPEN"),
            ("SKU2", 1, "OPEN"),
        ]
        assert view.open_task_count == 2

    def test_draft_order_rejected(self, warehouse, orders, picking):
        orders.create_order("O1", "OUTBOUND")
        orders.add_line("O1", "SKU1", "L1", 1)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            picking.create_pick_list("O1")
        assert exc_info.value.current_status == "DRAFT"

    def test_cancelled_order_rejected(self, warehouse, orders, picking):
        orders.create_order("O1", "OUTBOUND")
        orders.cancel_order("O1")
        with pytest.raises(InvalidStatusTransitionError):
            picking.create_pick_list("O1")

    def test_unknown_order(self, picking):
        with pytest.raises(OrderNotFoundError):
            picking.create_pick_list("NOPE")

    def test_second_picklist_rejected(self, posted_outbound, picking):
        picking.create_pick_list("O1")
        with pytest.raises(PickListExistsError) as exc_info:
            picking.create_pick_list("O1")
        assert exc_info.value.code == "PICK_LIST_EXISTS"

    def test_inbound_orders_can_be_picked(self, warehouse, orders, picking):
        orders.create_order("IN-1", "INBOUND")
        orders.add_line("IN-1", "SKU1", "L1", 4)
        orders.post_order("IN-1")

        assert len(picking.create_pick_list("IN-1").task_ids) == 1


class TestTransitions:
    @pytest.fixture
    def pick_list(self, posted_outbound, picking):
        return picking.create_pick_list("O1")

    def test_full_workflow(self, session, pick_list, picking, pick_lists):
        movements_before = _movement_count(session)

        started = picking.start_pick_list(pick_list.id)
        assert started.status == "IN_PROGRESS"
        assert started.started_at is not None

        for task_id in pick_list.task_ids:
            task = picking.mark_task_picked(task_id)
            assert task.status == "PICKED"
            assert task.picked_at is not None

        done = picking.done_pick_list(pick_list.id)
        assert done.status == "DONE"
        assert done.done_at is not None

        assert pick_lists.show_pick_list(pick_list.id).open_task_count == 0
        assert _movement_count(session) == movements_before

    def test_ids_accepted_as_strings(self, pick_list, picking):
        picking.start_pick_list(str(pick_list.id))
        task = picking.mark_task_picked(f" {pick_list.task_ids[0]} ")
        assert task.status == "PICKED"

    def test_start_twice(self, pick_list, picking):
        picking.start_pick_list(pick_list.id)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            picking.start_pick_list(pick_list.id)
        assert exc_info.value.current_status == "IN_PROGRESS"

    def test_done_before_start(self, pick_list, picking):
        with pytest.raises(InvalidStatusTransitionError):
            picking.done_pick_list(pick_list.id)

    def test_done_with_open_tasks(self, pick_list, picking):
        picking.start_pick_list(pick_list.id)
        picking.mark_task_picked(pick_list.task_ids[0])

        with pytest.raises(PickTasksOpenError) as exc_info:
            picking.done_pick_list(pick_list.id)

        assert exc_info.value.open_count == 1

    def test_pick_twice(self, pick_list, picking):
        task_id = pick_list.task_ids[0]
        picking.mark_task_picked(task_id)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            picking.mark_task_picked(task_id)
        assert exc_info.value.current_status == "PICKED"

    def test_done_twice(self, pick_list, picking):
        picking.start_pick_list(pick_list.id)
        for task_id in pick_list.task_ids:
            picking.mark_task_picked(task_id)
        picking.done_pick_list(pick_list.id)

        with pytest.raises(InvalidStatusTransitionError):
            picking.done_pick_list(pick_list.id)

    @pytest.mark.parametrize("bad_id", ["not-a-uuid", "", str(uuid4())])
    def test_unknown_ids(self, pick_list, picking, pick_lists, bad_id):
        with pytest.raises(PickListNotFoundError):
            picking.start_pick_list(bad_id)
        with pytest.raises(PickTaskNotFoundError):
            picking.mark_task_picked(bad_id)
        with pytest.raises(PickListNotFoundError):
            pick_lists.show_pick_list(bad_id)

    def test_transitions_are_logged_with_pick_list_id(self, captured_logs, pick_list, picking):
        picking.start_pick_list(pick_list.id)

        records = [r for r in captured_logs() if r["message"] == "pick_list_started"]
        assert records[0]["pick_list_id"] == str(pick_list.id)


class TestBinSuggestion:
    @pytest.fixture
    def zoned(self, warehouse, topology):
        topology.create_zone("L1", "A")
        topology.create_bin("L1", "A", "A-01")
        topology.create_bin("L1", "A", "A-02")
        return topology

    def test_single_bin_is_suggested(self, zoned, posted_outbound, picking, pick_lists):
        zoned.assign_item("L1", "A-01", "SKU1")

        info = picking.create_pick_list("O1")
        tasks = {t.sku: t.bin_code for t in pick_lists.show_pick_list(info.id).tasks}

        assert tasks == {"SKU1": "A-01", "SKU2": NO_BIN}

    def test_ambiguous_bins_leave_task_unassigned(
        self, zoned, posted_outbound, picking, pick_lists
    ):
        zoned.assign_item("L1", "A-01", "SKU1")
        zoned.assign_item("L1", "A-02", "SKU1")

        info = picking.create_pick_list("O1")
        view = pick_lists.show_pick_list(info.id)

        assert all(t.bin_code == NO_BIN for t in view.tasks)

    def test_bins_at_other_locations_ignored(
        self, warehouse, topology, posted_outbound, picking, pick_lists
    ):
        topology.create_zone("L2", "B")
        topology.create_bin("L2", "B", "B-01")
        topology.assign_item("L2", "B-01", "SKU1")

        info = picking.create_pick_list("O1")
        assert all(t.bin_code == NO_BIN for t in pick_lists.show_pick_list(info.id).tasks)

    def test_without_topology_no_bins(
        self, session, clock, zoned, posted_outbound, pick_lists
    ):
        zoned.assign_item("L1", "A-01", "SKU1")
        service = PickingService(session, topology=None, clock=clock)

        info = service.create_pick_list("O1")
        assert all(t.bin_code == NO_BIN for t in pick_lists.show_pick_list(info.id).tasks)
