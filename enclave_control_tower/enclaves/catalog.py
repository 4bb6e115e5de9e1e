"""
Enclave creation, lookup and audit history.

Status changes after creation go through the LifecycleController only.
"""

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.audit_service import AuditService
from ..db.models import EnclaveModel
from ..db.services import EnclaveService
from ..errors import InternalError, NotFoundError, ValidationError
from ..providers.registry import ProviderRegistry
from .schemas import EnclaveCreate

logger = structlog.get_logger()


class EnclaveCatalog:
    """Creates and reads enclave records."""

    def __init__(self, db: Session, registry: ProviderRegistry):
        self.db = db
        self.registry = registry
        self.enclaves = EnclaveService(db)
        self.audit = AuditService(db)

    def create_enclave(self, request: EnclaveCreate) -> EnclaveModel:
        """
        Validate placement and provider config, then store a PENDING_DEPLOY enclave.

        Raises:
            ValidationError: Unknown provider, unsupported region or invalid config
            InternalError: Persistence failure
        """
        provider = self.registry.get(request.provider_id)
        if provider is None:
            raise ValidationError(f"Provider {request.provider_id} not found")

        if request.region not in provider.regions:
            raise ValidationError(
                f"Region {request.region} not supported by {provider.name}",
                regions=list(provider.regions),
            )

        result = self.registry.validate_config(request.provider_id, request.provider_config)
        if not result.is_valid:
            raise ValidationError("Invalid provider configuration", details=result.errors)

        try:
            enclave = self.enclaves.create_enclave(
                name=request.name,
                owner_id=request.owner_id,
                region=request.region,
                provider_id=request.provider_id,
                description=request.description,
                provider_config=request.provider_config,
                github_connection=request.github_connection,
            )
            self.audit.log_create(enclave.id, enclave.to_dict(), actor_id=request.owner_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("enclave_create_failed", error=str(e))
            raise InternalError("Failed to create enclave") from e

        logger.info(
            "enclave_created",
            enclave_id=enclave.id,
            provider_id=enclave.provider_id,
            region=enclave.region,
        )
        return enclave

    def get_enclave(self, enclave_id: str) -> EnclaveModel:
        try:
            enclave = self.enclaves.get_enclave(enclave_id)
        except SQLAlchemyError as e:
            raise InternalError("Failed to load enclave") from e
        if enclave is None:
            raise NotFoundError("Enclave not found")
        return enclave

    def list_enclaves(
        self,
        owner_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[EnclaveModel]:
        try:
            return self.enclaves.get_enclaves(
                owner_id=owner_id, status=status, limit=limit, offset=offset
            )
        except SQLAlchemyError as e:
            raise InternalError("Failed to list enclaves") from e

    def history(self, enclave_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Audit trail of an enclave, newest first. Works after deletion too."""
        entries = self.audit.query_by_entity(enclave_id, limit=limit)
        return [entry.to_dict() for entry in entries]
