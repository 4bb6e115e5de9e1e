"""
Attestation summaries and verification reports.

Nothing here checks signatures or certificate chains. The summary reports
which measurements were found; the verification report is a deterministic
score over measurement and nonce presence.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..db.models import EnclaveModel
from ..db.services import EnclaveService
from ..enclaves.enums import EnclaveStatus, TrustLevel, VerificationStatus
from ..errors import ConflictError, InternalError, NotFoundError
from .measurements import MeasurementExtractor

logger = structlog.get_logger()

INTEGRITY_SCORE_WITH_PCRS = 95

BASE_RISK = 5
NO_NONCE_PENALTY = 2
NO_PCR_PENALTY = 20
HIGH_TRUST_MAX_RISK = 10
MEDIUM_TRUST_MAX_RISK = 30

COMPLIANCE_FLAGS = {"soc2": "SOC2", "hipaa": "HIPAA"}


def trust_for_risk(risk: int) -> TrustLevel:
    if risk <= HIGH_TRUST_MAX_RISK:
        return TrustLevel.HIGH
    if risk <= MEDIUM_TRUST_MAX_RISK:
        return TrustLevel.MEDIUM
    return TrustLevel.LOW


class AttestationService:
    """Composes attestation data for deployed enclaves."""

    def __init__(
        self,
        enclaves: EnclaveService,
        extractor: MeasurementExtractor,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.enclaves = enclaves
        self.extractor = extractor
        self.now = now or (lambda: datetime.now(timezone.utc))

    def _load(self, enclave_id: str) -> EnclaveModel:
        try:
            enclave = self.enclaves.get_enclave(enclave_id)
        except SQLAlchemyError as e:
            raise InternalError("Failed to load enclave") from e
        if enclave is None:
            raise NotFoundError("Enclave not found")
        return enclave

    def _require_deployed(self, enclave: EnclaveModel, message: str) -> None:
        if enclave.status != EnclaveStatus.DEPLOYED.value:
            raise ConflictError(message, status=enclave.status)

    def compose_attestation(self, enclave_id: str, base_url: str) -> Dict[str, Any]:
        """
        Build the attestation summary for a deployed enclave.

        Raises:
            NotFoundError: Unknown enclave
            ConflictError: Enclave is not DEPLOYED
        """
        enclave = self._load(enclave_id)
        self._require_deployed(
            enclave, "Attestation only available for deployed enclaves"
        )

        measurements = self.extractor.extract(enclave_id)
        found = bool(measurements.pcrs)
        root = f"{base_url.rstrip('/')}/enclaves/{enclave_id}"

        logger.info(
            "attestation_composed",
            enclave_id=enclave_id,
            pcr_count=len(measurements.pcrs),
        )
        return {
            "attestationDocument": {"pcrs": measurements.to_dict()["pcrs"]},
            "endpoints": {
                "verificationUrl": f"{root}/attestation/verify",
                "apiEndpoint": f"{root}/attestation",
            },
            "verification": {
                "verificationStatus": (
                    VerificationStatus.VERIFIED if found else VerificationStatus.PENDING
                ).value,
                "integrityScore": INTEGRITY_SCORE_WITH_PCRS if found else 0,
                "trustLevel": (TrustLevel.HIGH if found else TrustLevel.UNKNOWN).value,
            },
        }

    def verification_status(self, enclave_id: str) -> Dict[str, Any]:
        """Quick check: an enclave counts as verified while it is DEPLOYED."""
        enclave = self._load(enclave_id)
        verified = enclave.status == EnclaveStatus.DEPLOYED.value
        return {
            "enclaveId": enclave_id,
            "isVerified": verified,
            "status": enclave.status,
            "lastVerified": self.now().isoformat() if verified else None,
            "trustLevel": (TrustLevel.HIGH if verified else TrustLevel.UNKNOWN).value,
        }

    def verify_attestation(
        self, enclave_id: str, nonce: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Produce a heuristic verification report.

        Risk starts at 5, gains 2 without a nonce and 20 when no measurements
        were found. Trust is HIGH up to 10, MEDIUM up to 30, LOW above;
        LOW reports are not valid.
        """
        enclave = self._load(enclave_id)
        self._require_deployed(enclave, "Can only verify deployed enclaves")

        measurements = self.extractor.extract(enclave_id)
        has_pcrs = bool(measurements.pcrs)
        compliance = (enclave.provider_config or {}).get("compliance") or []

        risk = BASE_RISK
        recommendations: List[str] = []
        if has_pcrs:
            recommendations.append("Measurements were found in the enclave logs")
        else:
            risk += NO_PCR_PENALTY
            recommendations.append(
                "No measurements found yet; re-check once the enclave has logged its PCRs"
            )
        if not nonce:
            risk += NO_NONCE_PENALTY
            recommendations.append(
                "Consider providing a nonce for replay attack protection"
            )

        trust = trust_for_risk(risk)
        logger.info(
            "attestation_verified",
            enclave_id=enclave_id,
            risk_score=risk,
            trust_level=trust.value,
        )
        return {
            "isValid": trust is not TrustLevel.LOW,
            "trustLevel": trust.value,
            "verificationDetails": {
                "pcrVerification": has_pcrs,
                "nonceMatches": bool(nonce),
            },
            "complianceChecks": {
                key: marker in compliance for key, marker in COMPLIANCE_FLAGS.items()
            },
            "pcrs": measurements.to_dict()["pcrs"],
            "riskScore": risk,
            "recommendations": recommendations,
            "verifiedAt": self.now().isoformat(),
        }
