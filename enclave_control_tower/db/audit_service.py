"""
Audit Log Service.

Provides a clean interface for recording enclave audit events.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from .audit_models import AuditLogModel

ENCLAVE_KIND = "Enclave"


class AuditService:
    """Service for managing audit log entries.

    Usage:
        audit = AuditService(db_session)
        audit.log_status_change(enclave.id, "DEPLOYED", "PAUSING", actor_id=wallet)
    """

    def __init__(self, db: Session):
        self.db = db

    def _record(
        self,
        action: str,
        entity_id: str,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        actor_kind: str = "system",
        actor_id: str = "unknown",
        note: Optional[str] = None,
        entity_kind: str = ENCLAVE_KIND,
    ) -> AuditLogModel:
        entry = AuditLogModel(
            id=str(uuid.uuid4()),
            ts=datetime.now(timezone.utc),
            actor_kind=actor_kind,
            actor_id=actor_id,
            action=action,
            entity_kind=entity_kind,
            entity_id=entity_id,
            before=before,
            after=after,
            note=note,
        )

        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def log_create(
        self,
        entity_id: str,
        after: Dict[str, Any],
        actor_kind: str = "human",
        actor_id: str = "unknown",
        note: Optional[str] = None,
    ) -> AuditLogModel:
        """Log the creation of an enclave."""
        return self._record(
            "created",
            entity_id,
            after=after,
            actor_kind=actor_kind,
            actor_id=actor_id,
            note=note,
        )

    def log_status_change(
        self,
        entity_id: str,
        old_status: str,
        new_status: str,
        actor_kind: str = "human",
        actor_id: str = "unknown",
        note: Optional[str] = None,
    ) -> AuditLogModel:
        """Log a status change on an enclave.

        Args:
            entity_id: ID of the enclave
            old_status: Status before the change
            new_status: Status after the change
            actor_kind: Type of actor ("human", "system")
            actor_id: ID of the actor
            note: Optional human-readable note

        Returns:
            The created AuditLogModel
        """
        return self._record(
            "status_changed",
            entity_id,
            before={"status": old_status},
            after={"status": new_status},
            actor_kind=actor_kind,
            actor_id=actor_id,
            note=note,
        )

    def log_delete(
        self,
        entity_id: str,
        before: Dict[str, Any],
        actor_kind: str = "human",
        actor_id: str = "unknown",
    ) -> AuditLogModel:
        """Log the deletion of an enclave."""
        return self._record(
            "deleted",
            entity_id,
            before=before,
            actor_kind=actor_kind,
            actor_id=actor_id,
        )

    def log_trigger(
        self,
        entity_id: str,
        succeeded: bool,
        retried: bool = False,
        note: Optional[str] = None,
    ) -> Optional[AuditLogModel]:
        """Log the outcome of a destroy-workflow trigger.

        Successful first attempts are not recorded; failures and retries are.
        """
        if succeeded and not retried:
            return None
        action = "trigger_retried" if succeeded else "trigger_failed"
        return self._record(action, entity_id, actor_kind="system", actor_id="lifecycle", note=note)

    def query_by_entity(
        self,
        entity_id: str,
        entity_kind: str = ENCLAVE_KIND,
        limit: int = 100,
    ) -> List[AuditLogModel]:
        """Get audit entries for an enclave, newest first."""
        return (
            self.db.query(AuditLogModel)
            .filter(
                AuditLogModel.entity_kind == entity_kind,
                AuditLogModel.entity_id == entity_id,
            )
            .order_by(desc(AuditLogModel.ts))
            .limit(limit)
            .all()
        )

    def query_by_action(self, action: str, limit: int = 100) -> List[AuditLogModel]:
        """Get audit entries by action type, newest first."""
        return (
            self.db.query(AuditLogModel)
            .filter(AuditLogModel.action == action)
            .order_by(desc(AuditLogModel.ts))
            .limit(limit)
            .all()
        )
