"""
Enclave Lifecycle Controller.

Enforces the status state machine over enclaves:

    PENDING_DEPLOY -> DEPLOYING -> DEPLOYED
    DEPLOYED -> PAUSING -> PAUSED -> RESUMING -> DEPLOYED
    {DEPLOYED, PAUSED, FAILED} -> PENDING_DESTROY -> DESTROYING -> DESTROYED
    {DEPLOYING, PAUSING, RESUMING, DESTROYING} -> FAILED   (external monitor)

Clients may only request pause, resume and terminate. Each request is checked
in this order: existence, ownership, action validity, status precondition.
Nothing is written until all checks pass; the write itself is a single
conditional UPDATE.

Termination additionally schedules the destroy workflow. That call is
best-effort: a failure is logged and audited but never undoes the committed
status. ``reconcile_pending_destroys`` re-sends triggers for enclaves that
have sat in PENDING_DESTROY longer than a threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.audit_service import AuditService
from ..db.models import EnclaveModel
from ..db.services import EnclaveService
from ..errors import (
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from .enums import TERMINAL_STATUSES, EnclaveStatus, TransitionAction
from .triggers import WorkflowTrigger

logger = structlog.get_logger()

# Schedules ``fn(*args)`` to run later (e.g. BackgroundTasks.add_task).
Scheduler = Callable[..., Any]


@dataclass(frozen=True)
class TransitionRule:
    """Precondition and outcome of a client action."""

    allowed_from: FrozenSet[EnclaveStatus]
    target: EnclaveStatus
    conflict_message: str


TRANSITION_RULES: Dict[TransitionAction, TransitionRule] = {
    TransitionAction.PAUSE: TransitionRule(
        allowed_from=frozenset({EnclaveStatus.DEPLOYED}),
        target=EnclaveStatus.PAUSING,
        conflict_message="Can only pause deployed enclaves",
    ),
    TransitionAction.RESUME: TransitionRule(
        allowed_from=frozenset({EnclaveStatus.PAUSED}),
        target=EnclaveStatus.RESUMING,
        conflict_message="Can only resume paused enclaves",
    ),
    TransitionAction.TERMINATE: TransitionRule(
        allowed_from=frozenset(
            {EnclaveStatus.DEPLOYED, EnclaveStatus.PAUSED, EnclaveStatus.FAILED}
        ),
        target=EnclaveStatus.PENDING_DESTROY,
        conflict_message="Can only terminate deployed, paused, or failed enclaves",
    ),
}


def parse_action(action: str) -> TransitionAction:
    """Parse a client-supplied action string."""
    try:
        return TransitionAction(action.strip().lower())
    except ValueError:
        allowed = ", ".join(a.value for a in TransitionAction)
        raise ValidationError(
            f"Invalid action '{action}'. Allowed actions: {allowed}"
        ) from None


def _run_now(fn: Callable[..., Any], *args: Any) -> None:
    fn(*args)


class LifecycleController:
    """Validates and executes enclave status transitions.

    Args:
        db: Database session
        trigger: Destroy-workflow trigger; termination skips the trigger if None
        schedule: Callable used to defer the trigger past the response.
            Defaults to running it inline.
        audit: Audit service, created from ``db`` if omitted
    """

    def __init__(
        self,
        db: Session,
        trigger: Optional[WorkflowTrigger] = None,
        schedule: Optional[Scheduler] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.enclaves = EnclaveService(db)
        self.trigger = trigger
        self.schedule = schedule or _run_now
        self.audit = audit or AuditService(db)

    def _load_owned(self, enclave_id: str, caller_id: str) -> EnclaveModel:
        try:
            enclave = self.enclaves.get_enclave(enclave_id)
        except SQLAlchemyError as e:
            logger.error("enclave_lookup_failed", enclave_id=enclave_id, error=str(e))
            raise InternalError("Failed to load enclave") from e

        if enclave is None:
            raise NotFoundError("Enclave not found")
        if enclave.owner_id != caller_id:
            raise AuthorizationError("Unauthorized")
        return enclave

    def request_transition(
        self, enclave_id: str, action: Optional[str], caller_id: Optional[str]
    ) -> EnclaveModel:
        """
        Apply a client action to an enclave.

        Returns:
            The updated enclave

        Raises:
            ValidationError: Missing fields or unknown action
            NotFoundError: Unknown enclave id
            AuthorizationError: Caller is not the owner
            ConflictError: Status precondition not met
            InternalError: Persistence failure
        """
        if not action or not caller_id:
            raise ValidationError("Missing required fields: action, caller_id")

        enclave = self._load_owned(enclave_id, caller_id)
        parsed = parse_action(action)
        rule = TRANSITION_RULES[parsed]

        current = EnclaveStatus(enclave.status)
        if current not in rule.allowed_from:
            raise ConflictError(rule.conflict_message, status=current.value)

        try:
            updated = self.enclaves.update_status(
                enclave_id, caller_id, current, rule.target
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "enclave_status_write_failed",
                enclave_id=enclave_id,
                action=parsed.value,
                error=str(e),
            )
            raise InternalError("Failed to update enclave status") from e

        if updated is None:
            # Status moved between the read and the conditional write.
            raise ConflictError(rule.conflict_message, status=current.value)

        logger.info(
            "enclave_transition",
            enclave_id=enclave_id,
            action=parsed.value,
            from_status=current.value,
            to_status=rule.target.value,
        )
        self._audit_status_change(enclave_id, current, rule.target, caller_id, parsed)

        if parsed is TransitionAction.TERMINATE and self.trigger is not None:
            self.schedule(self.dispatch_destroy, enclave_id, caller_id)

        return updated

    def _audit_status_change(
        self,
        enclave_id: str,
        old: EnclaveStatus,
        new: EnclaveStatus,
        caller_id: str,
        action: TransitionAction,
    ) -> None:
        try:
            self.audit.log_status_change(
                enclave_id,
                old.value,
                new.value,
                actor_id=caller_id,
                note=f"{action.value} requested",
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("audit_write_failed", enclave_id=enclave_id, error=str(e))

    def dispatch_destroy(self, enclave_id: str, owner_id: str, retried: bool = False) -> bool:
        """
        Send the destroy trigger. Never raises.

        Returns:
            True if the trigger was accepted
        """
        if self.trigger is None:
            return False
        try:
            self.trigger.trigger_destroy(enclave_id, owner_id)
        except Exception as e:
            logger.error(
                "destroy_trigger_failed",
                enclave_id=enclave_id,
                retried=retried,
                error=str(e),
            )
            self._audit_trigger(enclave_id, False, retried, str(e))
            return False

        self._audit_trigger(enclave_id, True, retried, None)
        return True

    def _audit_trigger(
        self, enclave_id: str, succeeded: bool, retried: bool, note: Optional[str]
    ) -> None:
        try:
            self.audit.log_trigger(enclave_id, succeeded, retried=retried, note=note)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("audit_write_failed", enclave_id=enclave_id, error=str(e))

    def delete_enclave(self, enclave_id: str, caller_id: Optional[str]) -> None:
        """
        Delete an enclave in a terminal state.

        Raises:
            ValidationError: Missing caller
            NotFoundError: Unknown enclave id
            AuthorizationError: Caller is not the owner
            ConflictError: Enclave is not DESTROYED or FAILED
        """
        if not caller_id:
            raise ValidationError("Owner id required")

        enclave = self._load_owned(enclave_id, caller_id)
        current = EnclaveStatus(enclave.status)
        if current not in TERMINAL_STATUSES:
            raise ConflictError(
                "Can only delete destroyed or failed enclaves. Use terminate action first.",
                status=current.value,
            )

        snapshot = enclave.to_dict()
        try:
            self.enclaves.delete_enclave(enclave_id)
            self.audit.log_delete(enclave_id, snapshot, actor_id=caller_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InternalError("Failed to delete enclave") from e

        logger.info("enclave_deleted", enclave_id=enclave_id)

    def reconcile_pending_destroys(self, older_than: timedelta) -> List[str]:
        """
        Re-send destroy triggers for enclaves stuck in PENDING_DESTROY.

        An enclave qualifies when its ``updated_at`` is older than
        ``older_than``. Successful re-triggers bump ``updated_at`` so the next
        sweep leaves them alone for another interval.

        Returns:
            IDs of enclaves whose trigger was re-sent successfully
        """
        cutoff = datetime.now(timezone.utc) - older_than
        stale = self.enclaves.get_stale_enclaves(
            [EnclaveStatus.PENDING_DESTROY], cutoff
        )

        retriggered: List[str] = []
        for enclave in stale:
            if self.dispatch_destroy(enclave.id, enclave.owner_id, retried=True):
                self.enclaves.touch(enclave.id)
                retriggered.append(enclave.id)

        logger.info(
            "pending_destroy_reconciled",
            candidates=len(stale),
            retriggered=len(retriggered),
        )
        return retriggered
