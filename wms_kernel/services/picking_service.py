"""
PickingService -- picklists and pick tasks.

Responsibility:
    Turns a posted order into a picklist with one task per order line,
    then moves the picklist CREATED -> IN_PROGRESS -> DONE and each task
    OPEN -> PICKED.

Architecture position:
    Kernel > Services -- imperative shell.  Available when the ``picking``
    capability is enabled.  Reads bins through TopologySelector when the
    ``topology`` capability is enabled as well.

Invariants enforced:
    - Only POSTED orders get a picklist, and at most one (UNIQUE on
      pick_lists.order_id; the violation is reported as PickListExistsError).
    - One task per order line (UNIQUE on pick_tasks.order_line_id), with
      the line's quantity.
    - The picklist and all its tasks are written in one savepoint.
    - A picklist is DONE only when no task is OPEN.
    - Bin suggestion is advisory: a task gets a bin only when exactly one
      bin at the line's location holds the line's item.

Failure modes:
    - OrderNotFoundError, PickListNotFoundError, PickTaskNotFoundError.
    - InvalidStatusTransitionError for any transition the status does not
      allow, including picking a task twice.
    - PickListExistsError, PickTasksOpenError.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wms_kernel.domain.clock import Clock
from wms_kernel.domain.dtos import PickListInfo, PickTaskInfo
from wms_kernel.exceptions import (
    InvalidStatusTransitionError,
    OrderNotFoundError,
    PickListExistsError,
    PickListNotFoundError,
    PickTaskNotFoundError,
    PickTasksOpenError,
)
from wms_kernel.logging_config import LogContext, get_logger
from wms_kernel.models.audit_event import AuditAction
from wms_kernel.models.order import Order, OrderStatus
from wms_kernel.models.picking import (
    PickList,
    PickListStatus,
    PickTask,
    PickTaskStatus,
)
from wms_kernel.selectors.topology_selector import TopologySelector
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.base import BaseService, clean_identifier, parse_id

logger = get_logger("services.picking")


class PickingService(BaseService[PickList]):
    """
    Service for the picking workflow.

    Contract:
        ``create_pick_list`` takes an order number; the other commands take
        picklist or task ids (UUID or its string form).  A malformed id is
        reported as not found.

    Non-goals:
        - Does NOT write stock movements; stock left the ledger when the
          order was posted.
    """

    def __init__(
        self,
        session: Session,
        topology: TopologySelector | None = None,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        """
        Args:
            topology: Bin lookups for task suggestions.  None disables
                bin resolution and leaves every task without a bin.
        """
        super().__init__(session, clock, auditor)
        self._topology = topology

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _lock_pick_list(self, pick_list_id: UUID | str) -> PickList:
        key = parse_id(pick_list_id, lambda: PickListNotFoundError(str(pick_list_id)))
        pick_list = self.session.execute(
            select(PickList)
            .where(PickList.id == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if pick_list is None:
            raise PickListNotFoundError(str(key))
        return pick_list

    def _lock_task(self, task_id: UUID | str) -> PickTask:
        key = parse_id(task_id, lambda: PickTaskNotFoundError(str(task_id)))
        task = self.session.execute(
            select(PickTask)
            .where(PickTask.id == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if task is None:
            raise PickTaskNotFoundError(str(key))
        return task

    @staticmethod
    def _reject(entity_type: str, entity_id, current: str, attempted: str) -> None:
        logger.warning(
            "picking_transition_rejected",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "status": current,
                "attempted": attempted,
            },
        )
        raise InvalidStatusTransitionError(entity_type, str(entity_id), current, attempted)

    def _info(self, pick_list: PickList) -> PickListInfo:
        return PickListInfo(
            id=pick_list.id,
            order_number=pick_list.order.order_number,
            status=pick_list.status,
            task_ids=tuple(t.id for t in pick_list.tasks),
            created_at=pick_list.created_at,
            started_at=pick_list.started_at,
            done_at=pick_list.done_at,
        )

    def _resolve_bin(self, item_id: UUID, location_id: UUID) -> UUID | None:
        if self._topology is None:
            return None
        candidates = self._topology.bins_holding_item(item_id, location_id)
        if len(candidates) == 1:
            return candidates[0]
        return None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_pick_list(self, order_number: str) -> PickListInfo:
        """
        Create the picklist of a posted order.

        Raises:
            OrderNotFoundError: unknown order.
            InvalidStatusTransitionError: order is not POSTED.
            PickListExistsError: the order already has a picklist.
        """
        order_number = clean_identifier(order_number, "order number")
        order = self.session.execute(
            select(Order)
            .where(Order.order_number == order_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_number)
        if order.status != OrderStatus.POSTED.value:
            self._reject("order", order.order_number, order.status, "create picklist for")

        now = self._clock.now()
        try:
            with self.session.begin_nested():
                pick_list = PickList(
                    order=order,
                    status=PickListStatus.CREATED.value,
                    created_at=now,
                )
                self.session.add(pick_list)
                for line in order.lines:
                    pick_list.tasks.append(
                        PickTask(
                            order_line_id=line.id,
                            quantity=line.quantity,
                            status=PickTaskStatus.OPEN.value,
                            bin_id=self._resolve_bin(line.item_id, line.location_id),
                            created_at=now,
                        )
                    )
                self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "pick_list_exists",
                extra={"order_number": order_number, "db_error": str(exc.orig)},
            )
            raise PickListExistsError(order_number) from exc

        resolved = sum(1 for t in pick_list.tasks if t.bin_id is not None)
        logger.info(
            "pick_list_created",
            extra={
                "order_number": order_number,
                "pick_list_id": str(pick_list.id),
                "task_count": len(pick_list.tasks),
                "bins_resolved": resolved,
            },
        )
        self._audit(
            AuditAction.PICK_LIST_CREATED, "PickList", pick_list.id, order_number,
            {"task_count": len(pick_list.tasks), "bins_resolved": resolved},
        )
        return self._info(pick_list)

    def start_pick_list(self, pick_list_id: UUID | str) -> PickListInfo:
        """CREATED -> IN_PROGRESS."""
        pick_list = self._lock_pick_list(pick_list_id)
        with LogContext.bind(pick_list_id=str(pick_list.id)):
            if not pick_list.can_transition_to(PickListStatus.IN_PROGRESS):
                self._reject("picklist", pick_list.id, pick_list.status, "start")
            pick_list.status = PickListStatus.IN_PROGRESS.value
            pick_list.started_at = self._clock.now()
            self.session.flush()
            logger.info("pick_list_started")
        self._audit(
            AuditAction.PICK_LIST_STARTED, "PickList", pick_list.id,
            pick_list.order.order_number,
        )
        return self._info(pick_list)

    def mark_task_picked(self, task_id: UUID | str) -> PickTaskInfo:
        """
        OPEN -> PICKED.

        Raises:
            InvalidStatusTransitionError: the task is already PICKED.
        """
        task = self._lock_task(task_id)
        with LogContext.bind(pick_list_id=str(task.pick_list_id)):
            if not task.can_transition_to(PickTaskStatus.PICKED):
                self._reject("pick task", task.id, task.status, "pick")
            task.status = PickTaskStatus.PICKED.value
            task.picked_at = self._clock.now()
            self.session.flush()
            logger.info("pick_task_picked", extra={"task_id": str(task.id)})
        self._audit(
            AuditAction.PICK_TASK_PICKED, "PickTask", task.id,
            task.pick_list.order.order_number,
            {"pick_list_id": str(task.pick_list_id), "quantity": task.quantity},
        )
        return PickTaskInfo(
            id=task.id,
            pick_list_id=task.pick_list_id,
            status=task.status,
            picked_at=task.picked_at,
        )

    def done_pick_list(self, pick_list_id: UUID | str) -> PickListInfo:
        """
        IN_PROGRESS -> DONE, once every task is PICKED.

        Raises:
            InvalidStatusTransitionError: picklist is not IN_PROGRESS.
            PickTasksOpenError: ``open_count`` tasks are still OPEN.
        """
        pick_list = self._lock_pick_list(pick_list_id)
        with LogContext.bind(pick_list_id=str(pick_list.id)):
            if not pick_list.can_transition_to(PickListStatus.DONE):
                self._reject("picklist", pick_list.id, pick_list.status, "finish")

            open_count = self.session.execute(
                select(func.count())
                .select_from(PickTask)
                .where(
                    PickTask.pick_list_id == pick_list.id,
                    PickTask.status == PickTaskStatus.OPEN.value,
                )
            ).scalar_one()
            if open_count > 0:
                logger.warning("pick_tasks_open", extra={"open_count": open_count})
                raise PickTasksOpenError(str(pick_list.id), open_count)

            pick_list.status = PickListStatus.DONE.value
            pick_list.done_at = self._clock.now()
            self.session.flush()
            logger.info("pick_list_done")
        self._audit(
            AuditAction.PICK_LIST_DONE, "PickList", pick_list.id,
            pick_list.order.order_number,
        )
        return self._info(pick_list)
