"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel, plus the small input normalizers
    every service applies before touching the database.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  The caller (session_scope, the
      orchestrator, or a test fixture) owns commit/rollback.
    - Uniqueness is enforced by inserting inside a savepoint and mapping
      IntegrityError to a typed conflict, never by check-then-insert.

Failure modes:
    - If a subclass calls ``session.commit()``, multi-step operations such
      as posting lose their all-or-nothing guarantee.
"""

from abc import ABC
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wms_kernel.db.base import Base
from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.exceptions import (
    InvalidIdentifierError,
    InvalidQuantityError,
    WMSKernelError,
)
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit_event import AuditAction

if TYPE_CHECKING:
    from wms_kernel.services.auditor_service import AuditorService

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


def clean_identifier(value: str | None, field: str) -> str:
    """Trim an identifier; raise InvalidIdentifierError when empty."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidIdentifierError(field, value)
    return cleaned


def require_positive(quantity: int) -> int:
    """Raise InvalidQuantityError unless quantity is an int > 0."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


def parse_id(value: UUID | str, not_found: Callable[[], WMSKernelError]) -> UUID:
    """
    Coerce an id given as UUID or string.

    A malformed id cannot name an existing row, so it is reported as
    not found rather than as a validation error.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        raise not_found() from None


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()``.
        - Savepoints (``begin_nested``) are used only to make one
          operation atomic inside the caller's transaction.

    Non-goals:
        - Does NOT provide read projections; those live in
          ``wms_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: "AuditorService | None" = None,
    ):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Clock for timestamps. Defaults to SystemClock.
            auditor: Audit trail writer.  None when auditing is disabled.
        """
        self.session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor

    @property
    def clock(self) -> Clock:
        return self._clock

    def _add_unique(
        self,
        entity: ModelType,
        on_conflict: Callable[[], WMSKernelError],
    ) -> ModelType:
        """
        INSERT ``entity`` inside a savepoint.

        A uniqueness violation rolls back only the savepoint, leaving the
        caller's transaction usable, and is re-raised as ``on_conflict()``.
        """
        try:
            with self.session.begin_nested():
                self.session.add(entity)
                self.session.flush()
        except IntegrityError as exc:
            error = on_conflict()
            logger.warning(
                "unique_insert_conflict",
                extra={
                    "entity_type": type(entity).__name__,
                    "error_code": error.code,
                    "db_error": str(exc.orig),
                },
            )
            raise error from exc
        return entity

    def _audit(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        entity_ref: str = "",
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit event in the current transaction, if auditing is on."""
        if self._auditor is None:
            return
        self._auditor.record(action, entity_type, entity_id, entity_ref, payload)
