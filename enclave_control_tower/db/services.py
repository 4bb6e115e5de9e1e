"""
Database services for Enclave Control Tower.
"""

import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import desc, update
from sqlalchemy.orm import Session

from ..enclaves.enums import EnclaveStatus
from .models import EnclaveModel


def generate_enclave_id(prefix: str = "enc") -> str:
    """Generate an id of the form ``<prefix>_<epoch-ms>_<random9>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class EnclaveService:
    """Service for managing enclave records in the database."""

    def __init__(self, db: Session):
        self.db = db

    def create_enclave(
        self,
        name: str,
        owner_id: str,
        region: str,
        provider_id: str,
        description: str = "",
        provider_config: Optional[Dict[str, Any]] = None,
        github_connection: Optional[Dict[str, Any]] = None,
        status: EnclaveStatus = EnclaveStatus.PENDING_DEPLOY,
        enclave_id: Optional[str] = None,
    ) -> EnclaveModel:
        """Create a new enclave record."""
        now = datetime.now(timezone.utc)
        db_enclave = EnclaveModel(
            id=enclave_id or generate_enclave_id(),
            name=name,
            description=description,
            status=status.value,
            owner_id=owner_id,
            region=region,
            provider_id=provider_id,
            provider_config=provider_config or {},
            github_connection=github_connection,
            created_at=now,
            updated_at=now,
        )

        self.db.add(db_enclave)
        self.db.commit()
        self.db.refresh(db_enclave)
        return db_enclave

    def get_enclave(self, enclave_id: str) -> Optional[EnclaveModel]:
        """Get an enclave by ID."""
        return (
            self.db.query(EnclaveModel).filter(EnclaveModel.id == enclave_id).first()
        )

    def get_enclaves(
        self,
        owner_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[EnclaveModel]:
        """Get enclaves with optional filtering."""
        query = self.db.query(EnclaveModel)

        if owner_id:
            query = query.filter(EnclaveModel.owner_id == owner_id)
        if status:
            query = query.filter(EnclaveModel.status == status)

        return (
            query.order_by(desc(EnclaveModel.created_at))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_stale_enclaves(
        self, statuses: Iterable[EnclaveStatus], updated_before: datetime
    ) -> List[EnclaveModel]:
        """Get enclaves in one of ``statuses`` not updated since ``updated_before``."""
        return (
            self.db.query(EnclaveModel)
            .filter(EnclaveModel.status.in_([s.value for s in statuses]))
            .filter(EnclaveModel.updated_at < updated_before)
            .order_by(EnclaveModel.updated_at)
            .all()
        )

    def update_status(
        self,
        enclave_id: str,
        owner_id: str,
        expected_status: EnclaveStatus,
        new_status: EnclaveStatus,
    ) -> Optional[EnclaveModel]:
        """
        Atomically move an enclave from ``expected_status`` to ``new_status``.

        The UPDATE is conditioned on id, owner and the expected status, so a
        concurrent change makes it match zero rows.

        Returns:
            The refreshed enclave, or None if no row matched.
        """
        result = self.db.execute(
            update(EnclaveModel)
            .where(
                EnclaveModel.id == enclave_id,
                EnclaveModel.owner_id == owner_id,
                EnclaveModel.status == expected_status.value,
            )
            .values(status=new_status.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        if result.rowcount != 1:
            return None

        enclave = self.get_enclave(enclave_id)
        if enclave is not None:
            self.db.refresh(enclave)
        return enclave

    def touch(self, enclave_id: str) -> None:
        """Bump ``updated_at`` without changing anything else."""
        self.db.execute(
            update(EnclaveModel)
            .where(EnclaveModel.id == enclave_id)
            .values(updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def delete_enclave(self, enclave_id: str) -> bool:
        """Delete an enclave. Returns True if a row was removed."""
        enclave = self.get_enclave(enclave_id)
        if not enclave:
            return False

        self.db.delete(enclave)
        self.db.commit()
        return True
