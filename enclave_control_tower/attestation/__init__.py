"""Measurement extraction and attestation summaries."""

from .measurements import (
    CANONICAL_INDICES,
    MeasurementExtractor,
    MeasurementResult,
    parse_measurement_line,
)
from .service import AttestationService, trust_for_risk

__all__ = [
    "AttestationService",
    "CANONICAL_INDICES",
    "MeasurementExtractor",
    "MeasurementResult",
    "parse_measurement_line",
    "trust_for_risk",
]
