"""
SQLAlchemy models for Enclave Control Tower.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Text
from sqlalchemy.sql import func

from ..enclaves.enums import EnclaveStatus
from .audit_models import AuditLogModel  # noqa: F401
from .base import Base

enclave_status_enum = Enum(
    *[status.value for status in EnclaveStatus],
    name="enclave_status",
)


class EnclaveModel(Base):
    """SQLAlchemy model for enclaves."""

    __tablename__ = "enclaves"

    # Primary fields
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")

    # Lifecycle
    status = Column(
        enclave_status_enum,
        nullable=False,
        default=EnclaveStatus.PENDING_DEPLOY.value,
        index=True,
    )
    # Written by the external status monitor when an operation fails
    error_message = Column(Text, nullable=True)

    # Ownership (wallet address)
    owner_id = Column(String(128), nullable=False, index=True)

    # Placement
    region = Column(String(50), nullable=False)
    provider_id = Column(String(50), nullable=False)
    provider_config = Column(JSON, nullable=False, default=dict)
    github_connection = Column(JSON, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_enclaves_owner_status", "owner_id", "status"),
        Index("ix_enclaves_status_updated", "status", "updated_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "error_message": self.error_message,
            "owner_id": self.owner_id,
            "region": self.region,
            "provider_id": self.provider_id,
            "provider_config": self.provider_config,
            "github_connection": self.github_connection,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
