"""
Tests for the destroy-workflow triggers and settings-derived AWS names.
"""

import json

import pytest

from enclave_control_tower.config import Settings
from enclave_control_tower.dependencies import build_trigger
from enclave_control_tower.enclaves.triggers import (
    LambdaWorkflowTrigger,
    RecordingWorkflowTrigger,
)
from enclave_control_tower.errors import UpstreamSourceError

from conftest import FakeLambdaClient, client_error


class TestLambdaTrigger:
    def test_invokes_asynchronously_with_payload(self):
        client = FakeLambdaClient()
        LambdaWorkflowTrigger(client, "enclave-dev-enclave-trigger").trigger_destroy(
            "enc_1", "0xabc"
        )

        call = client.invocations[0]
        assert call["FunctionName"] == "enclave-dev-enclave-trigger"
        assert call["InvocationType"] == "Event"
        assert json.loads(call["Payload"]) == {
            "enclave_id": "enc_1",
            "action": "destroy",
            "wallet_address": "0xabc",
        }

    def test_client_error_is_wrapped(self):
        client = FakeLambdaClient(error=client_error("TooManyRequestsException", "Invoke"))
        with pytest.raises(UpstreamSourceError) as exc_info:
            LambdaWorkflowTrigger(client, "fn").trigger_destroy("enc_1", "0xabc")
        assert exc_info.value.source == "lambda"
        assert exc_info.value.operation == "invoke"

    @pytest.mark.parametrize(
        "response", [{"StatusCode": 500}, {"StatusCode": 202, "FunctionError": "Unhandled"}]
    )
    def test_rejected_invocation(self, response):
        with pytest.raises(UpstreamSourceError):
            LambdaWorkflowTrigger(FakeLambdaClient(response), "fn").trigger_destroy("enc_1", "0xabc")


def test_recording_trigger_without_account():
    assert isinstance(build_trigger(Settings(aws_account_id=None)), RecordingWorkflowTrigger)


def test_names_derive_from_prefix():
    settings = Settings(resource_prefix="enc-prod", aws_account_id="123456789012", aws_region="eu-west-1")

    assert settings.container_log_group == "/ecs/enc-prod-terraform-runner"
    assert settings.function_log_groups[-1] == "/aws/lambda/enc-prod-status-monitor"
    assert settings.state_machine_arns["cleanup"] == (
        "arn:aws:states:eu-west-1:123456789012:stateMachine:enc-prod-cleanup"
    )
    assert settings.destroy_function == "enc-prod-enclave-trigger"
