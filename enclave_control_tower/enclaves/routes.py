"""
Enclave API Routes.

All endpoints are prefixed with /enclaves. Domain errors raised below are
rendered by the EnclaveError handler registered on the app.
"""

import asyncio
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from ..attestation.measurements import MeasurementExtractor
from ..attestation.service import AttestationService
from ..db.base import get_db
from ..dependencies import (
    get_aggregator,
    get_attestation,
    get_catalog,
    get_extractor,
    get_trigger,
)
from ..logs.aggregator import LogAggregator
from .catalog import EnclaveCatalog
from .lifecycle import LifecycleController
from .schemas import EnclaveCreate, TransitionRequest, VerifyRequest
from .triggers import WorkflowTrigger

router = APIRouter(prefix="/enclaves", tags=["Enclaves"])

TRANSITION_MESSAGES = {
    "pause": "Enclave pause initiated",
    "resume": "Enclave resume initiated",
    "terminate": "Enclave termination initiated",
}


# =============================================================================
# CRUD
# =============================================================================


@router.post("", status_code=201)
async def create_enclave(
    enclave: EnclaveCreate,
    catalog: EnclaveCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    """Create a new enclave in PENDING_DEPLOY."""
    db_enclave = catalog.create_enclave(enclave)
    return {"status": "success", "enclave": db_enclave.to_dict()}


@router.get("")
async def list_enclaves(
    owner_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    catalog: EnclaveCatalog = Depends(get_catalog),
) -> List[Dict[str, Any]]:
    """List enclaves with optional filtering."""
    enclaves = catalog.list_enclaves(
        owner_id=owner_id, status=status, limit=limit, offset=offset
    )
    return [e.to_dict() for e in enclaves]


@router.get("/{enclave_id}")
async def get_enclave(
    enclave_id: str,
    catalog: EnclaveCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    """Get an enclave by ID."""
    return catalog.get_enclave(enclave_id).to_dict()


@router.get("/{enclave_id}/history")
async def get_enclave_history(
    enclave_id: str,
    limit: int = Query(100, ge=1, le=1000),
    catalog: EnclaveCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    """Audit trail for an enclave."""
    return {"enclave_id": enclave_id, "entries": catalog.history(enclave_id, limit)}


# =============================================================================
# Lifecycle
# =============================================================================


@router.patch("/{enclave_id}")
async def transition_enclave(
    enclave_id: str,
    request: TransitionRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    trigger: WorkflowTrigger = Depends(get_trigger),
) -> Dict[str, Any]:
    """Pause, resume or terminate an enclave.

    Termination returns as soon as the status is written; the destroy
    workflow is triggered after the response is sent.
    """
    controller = LifecycleController(
        db, trigger=trigger, schedule=background_tasks.add_task
    )
    enclave = controller.request_transition(
        enclave_id, request.action, request.caller_id
    )
    return {
        "enclave": enclave.to_dict(),
        "message": TRANSITION_MESSAGES.get(
            (request.action or "").strip().lower(), "Enclave updated"
        ),
    }


@router.delete("/{enclave_id}")
async def delete_enclave(
    enclave_id: str,
    owner_id: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Dict[str, str]:
    """Delete a DESTROYED or FAILED enclave."""
    LifecycleController(db).delete_enclave(enclave_id, owner_id)
    return {"status": "success", "message": "Enclave deleted successfully"}


# =============================================================================
# Logs and attestation
# =============================================================================


@router.get("/{enclave_id}/logs")
async def get_enclave_logs(
    enclave_id: str,
    type: Optional[str] = Query("all"),
    limit: Optional[int] = Query(None),
    aggregator: LogAggregator = Depends(get_aggregator),
) -> Dict[str, Any]:
    """Merged logs from the deployment backends and the enclave itself."""
    return await aggregator.fetch_logs(enclave_id, type, limit)


@router.get("/{enclave_id}/pcrs")
async def get_enclave_pcrs(
    enclave_id: str,
    catalog: EnclaveCatalog = Depends(get_catalog),
    extractor: MeasurementExtractor = Depends(get_extractor),
) -> Dict[str, Any]:
    """Measurement registers found in the enclave's logs."""
    catalog.get_enclave(enclave_id)
    result = await asyncio.to_thread(extractor.extract, enclave_id)
    return result.to_dict()


@router.get("/{enclave_id}/attestation")
async def get_enclave_attestation(
    enclave_id: str,
    http_request: Request,
    attestation: AttestationService = Depends(get_attestation),
) -> Dict[str, Any]:
    """Attestation summary of a deployed enclave."""
    return await asyncio.to_thread(
        attestation.compose_attestation, enclave_id, str(http_request.base_url)
    )


@router.get("/{enclave_id}/attestation/verify")
async def get_verification_status(
    enclave_id: str,
    attestation: AttestationService = Depends(get_attestation),
) -> Dict[str, Any]:
    """Quick verification status check."""
    return attestation.verification_status(enclave_id)


@router.post("/{enclave_id}/attestation/verify")
async def verify_enclave_attestation(
    enclave_id: str,
    request: Optional[VerifyRequest] = None,
    attestation: AttestationService = Depends(get_attestation),
) -> Dict[str, Any]:
    """Heuristic verification report for a deployed enclave."""
    nonce = request.nonce if request else None
    return await asyncio.to_thread(attestation.verify_attestation, enclave_id, nonce)
