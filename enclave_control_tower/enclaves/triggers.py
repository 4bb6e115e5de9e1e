"""
External workflow triggers.

Design principle: the lifecycle controller only knows the WorkflowTrigger
interface; the Lambda-backed implementation is one of possibly several.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import UpstreamSourceError

logger = structlog.get_logger()


def build_destroy_payload(enclave_id: str, owner_id: str) -> Dict[str, Any]:
    """Payload the destroy workflow expects."""
    return {
        "enclave_id": enclave_id,
        "action": "destroy",
        "wallet_address": owner_id,
    }


class WorkflowTrigger(ABC):
    """Abstract base class for destroy-workflow triggers."""

    @abstractmethod
    def trigger_destroy(self, enclave_id: str, owner_id: str) -> None:
        """Start the destroy workflow for an enclave.

        Raises:
            UpstreamSourceError: If the workflow engine rejected the request
        """
        pass


class LambdaWorkflowTrigger(WorkflowTrigger):
    """Invokes the enclave trigger function asynchronously (Event invocation)."""

    def __init__(self, client: Any, function_name: str):
        self.client = client
        self.function_name = function_name

    def trigger_destroy(self, enclave_id: str, owner_id: str) -> None:
        payload = build_destroy_payload(enclave_id, owner_id)
        try:
            response = self.client.invoke(
                FunctionName=self.function_name,
                InvocationType="Event",
                Payload=json.dumps(payload).encode("utf-8"),
            )
        except (BotoCoreError, ClientError) as e:
            raise UpstreamSourceError("lambda", "invoke", e) from e

        status = response.get("StatusCode")
        if status is not None and status >= 300:
            raise UpstreamSourceError(
                "lambda", "invoke", RuntimeError(f"status code {status}")
            )
        if response.get("FunctionError"):
            raise UpstreamSourceError(
                "lambda", "invoke", RuntimeError(response["FunctionError"])
            )

        logger.info(
            "destroy_trigger_sent",
            enclave_id=enclave_id,
            function=self.function_name,
        )


class RecordingWorkflowTrigger(WorkflowTrigger):
    """Trigger that records calls instead of contacting AWS.

    Used when no workflow engine is configured (local development) and in tests.
    Set ``fail_with`` to make every call raise.
    """

    def __init__(self, fail_with: Optional[Exception] = None):
        self.calls: List[Dict[str, Any]] = []
        self.fail_with = fail_with

    def trigger_destroy(self, enclave_id: str, owner_id: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(build_destroy_payload(enclave_id, owner_id))
