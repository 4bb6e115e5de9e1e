"""
Tests for log record ordering, relevance/error predicates and message formatting.
"""

from datetime import datetime, timezone

import pytest

from enclave_control_tower.enclaves.enums import LogSource
from enclave_control_tower.logs.formatting import (
    EVENT_FORMATTERS,
    format_workflow_event,
    parse_application_message,
)
from enclave_control_tower.logs.predicates import (
    ERROR_PREDICATES,
    container_relevance,
    function_relevance,
    is_application_error,
    is_container_error,
    is_function_error,
    is_workflow_error,
)
from enclave_control_tower.logs.records import LogRecord, merge_records, sort_records


def rec(ts=None, message="line", source=LogSource.ECS, **kwargs):
    return LogRecord(timestamp=ts, message=message, source=source, **kwargs)


class TestRecords:
    def test_merge_scenario(self):
        a = [rec(100), rec(50)]
        b = [rec(200, source=LogSource.LAMBDA)]

        merged = merge_records([a, b], limit=10)

        assert [r.timestamp for r in merged] == [200, 100, 50]

    def test_missing_timestamps_sort_last(self):
        records = sort_records([rec(None, "a"), rec(5), rec(None, "b"), rec(10)])
        assert [r.timestamp for r in records] == [10, 5, None, None]
        assert [r.message for r in records[2:]] == ["a", "b"]

    @pytest.mark.parametrize("limit", [0, 1, 3, 100])
    def test_merge_never_exceeds_limit(self, limit):
        groups = [[rec(i) for i in range(10)], [rec(i) for i in range(5)]]
        merged = merge_records(groups, limit)
        assert len(merged) <= limit
        timestamps = [r.timestamp for r in merged]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_wire_form_uses_camel_case_and_omits_absent(self):
        record = rec(
            1,
            "[PCR] PCR0: ab",
            source=LogSource.APPLICATION,
            log_group="/aws/ec2/enclave/enc_1",
            is_pcr=True,
            state_machine="deployment",
        )
        assert record.to_dict() == {
            "timestamp": 1,
            "message": "[PCR] PCR0: ab",
            "source": "application",
            "logGroup": "/aws/ec2/enclave/enc_1",
            "isPCR": True,
            "stateMachine": "deployment",
        }


class TestRelevance:
    def test_container_keeps_enclave_lines_and_tool_markers(self):
        relevant = container_relevance("enc_1")
        assert relevant("deploying enc_1 now")
        assert relevant("ENCLAVE_ID=enc_9")
        assert relevant("Terraform will perform the following actions")
        assert relevant("=== apply ===")
        assert not relevant("unrelated chatter")

    def test_function_keeps_enclave_lines_only(self):
        relevant = function_relevance("enc_1", "enclave-dev-validation")
        assert relevant("validating enc_1")
        assert not relevant("Checking enclave enc_2")

    def test_status_monitor_keeps_health_phrases(self):
        relevant = function_relevance("enc_1", "enclave-dev-status-monitor")
        assert relevant("Starting enclave status monitoring")
        assert relevant("Checking enclave enc_2")
        assert not relevant("START RequestId: 123")


class TestErrorPredicates:
    def test_every_fetched_source_has_a_predicate(self):
        assert set(ERROR_PREDICATES) == {
            LogSource.ECS,
            LogSource.STEP_FUNCTIONS,
            LogSource.LAMBDA,
            LogSource.APPLICATION,
        }

    @pytest.mark.parametrize(
        "message,event_type,expected",
        [
            ("❌ Task failed: States.TaskFailed", "TaskFailed", True),
            ("something failed", "TaskStateExited", True),
            ("Execution completed successfully", "ExecutionSucceeded", False),
            ("➡️ Started task: Deploy", "LambdaFunctionFailed", True),
        ],
    )
    def test_workflow(self, message, event_type, expected):
        record = rec(1, message, LogSource.STEP_FUNCTIONS, type=event_type)
        assert is_workflow_error(record) is expected

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("[ERROR] boom", True),
            ("Traceback: Exception raised", True),
            ("Error: bad input", True),
            ("Failed to update enclave", True),
            ("all good", False),
        ],
    )
    def test_function(self, message, expected):
        assert is_function_error(rec(1, message, LogSource.LAMBDA)) is expected

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Error: provider not configured", True),
            ("Apply FAILED", True),
            ("an error occurred", True),
            ("completed with no error", False),
            ("Apply complete!", False),
        ],
    )
    def test_container(self, message, expected):
        assert is_container_error(rec(1, message, LogSource.ECS)) is expected

    def test_application(self):
        assert is_application_error(rec(1, "x", LogSource.APPLICATION, is_error=True))
        assert is_application_error(rec(1, "x", LogSource.APPLICATION, type="stderr"))
        assert is_application_error(rec(1, "FATAL: out of memory", LogSource.APPLICATION))
        assert not is_application_error(rec(1, "[INFO] ready", LogSource.APPLICATION))


class TestWorkflowFormatting:
    def test_known_events(self):
        assert format_workflow_event(
            {"type": "TaskStateEntered", "stateEnteredEventDetails": {"name": "Deploy"}}
        ) == "➡️ Started task: Deploy"
        assert format_workflow_event(
            {"type": "ExecutionSucceeded"}
        ) == "Execution completed successfully"
        assert format_workflow_event(
            {
                "type": "TaskFailed",
                "taskFailedEventDetails": {"error": "States.Timeout", "cause": "slow"},
            }
        ) == "❌ Task failed: States.Timeout - slow"

    def test_failure_without_cause(self):
        assert format_workflow_event(
            {"type": "ExecutionFailed", "executionFailedEventDetails": {"error": "Boom"}}
        ) == "❌ Execution failed: Boom"

    def test_unknown_event_falls_back_to_raw_preview(self):
        event = {
            "type": "MapRunStarted",
            "timestamp": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "details": "x" * 300,
        }
        message = format_workflow_event(event)
        assert message.startswith("MapRunStarted: {")
        assert message.endswith("...")
        assert len(message) == len("MapRunStarted: ") + 100 + 3

    def test_formatters_are_keyed_by_event_type(self):
        assert "TaskScheduled" in EVENT_FORMATTERS
        assert "ChoiceStateEntered" in EVENT_FORMATTERS


class TestApplicationEnvelope:
    def test_envelope_with_timestamp(self):
        raw = '{"type": "PCR", "message": "PCR0: abcd", "timestamp": "2026-01-01T00:00:00Z"}'
        assert parse_application_message(raw) == (
            "pcr",
            "2026-01-01T00:00:00Z - [PCR] PCR0: abcd",
        )

    def test_envelope_without_timestamp(self):
        assert parse_application_message('{"type": "ERROR", "message": "boom"}') == (
            "error",
            "[ERROR] boom",
        )

    @pytest.mark.parametrize(
        "raw", ["plain text line", "[1, 2, 3]", '{"type": "INFO"}', "{not json"]
    )
    def test_other_lines_pass_through(self, raw):
        assert parse_application_message(raw) == ("application", raw)
