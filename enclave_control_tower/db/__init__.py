"""Database package for Enclave Control Tower."""

from .audit_service import AuditService
from .base import Base, get_db, get_engine, init_database
from .models import AuditLogModel, EnclaveModel
from .services import EnclaveService, generate_enclave_id

__all__ = [
    "AuditLogModel",
    "AuditService",
    "Base",
    "EnclaveModel",
    "EnclaveService",
    "generate_enclave_id",
    "get_db",
    "get_engine",
    "init_database",
]
