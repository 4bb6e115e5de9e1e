"""Request bodies accepted by the enclave endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, constr, model_validator


class EnclaveCreate(BaseModel):
    """New enclave request.

    Compatibility: accepts 'wallet_address' as alias for 'owner_id'.
    """

    name: constr(min_length=1, max_length=200)
    description: constr(max_length=4000) = ""
    region: constr(min_length=1, max_length=50)
    provider_id: constr(min_length=1, max_length=50) = "aws-nitro"
    provider_config: Dict[str, Any] = Field(default_factory=dict)
    github_connection: Optional[Dict[str, Any]] = None

    owner_id: Optional[constr(min_length=1, max_length=128)] = None
    wallet_address: Optional[constr(min_length=1, max_length=128)] = None

    @model_validator(mode="after")
    def resolve_owner_alias(self) -> "EnclaveCreate":
        if self.owner_id is None and self.wallet_address is not None:
            object.__setattr__(self, "owner_id", self.wallet_address)
        elif self.owner_id is None:
            raise ValueError("Either 'owner_id' or 'wallet_address' must be provided")
        object.__setattr__(self, "wallet_address", None)
        return self


class TransitionRequest(BaseModel):
    """Lifecycle action on an enclave.

    Both fields are optional here so that a missing one is reported by the
    lifecycle controller (400) rather than by request parsing (422).
    'wallet_address' is accepted as alias for 'caller_id'.
    """

    action: Optional[str] = None
    caller_id: Optional[str] = None
    wallet_address: Optional[str] = None

    @model_validator(mode="after")
    def resolve_caller_alias(self) -> "TransitionRequest":
        if self.caller_id is None and self.wallet_address is not None:
            object.__setattr__(self, "caller_id", self.wallet_address)
        object.__setattr__(self, "wallet_address", None)
        return self


class VerifyRequest(BaseModel):
    nonce: Optional[str] = None
    challenge: Optional[str] = None
    attestation_document: Optional[str] = None
