"""Test configuration and fixtures."""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from enclave_control_tower.api import app
from enclave_control_tower.attestation.measurements import MeasurementExtractor
from enclave_control_tower.db.base import Base, get_db
from enclave_control_tower.db.services import EnclaveService
from enclave_control_tower.dependencies import (
    get_extractor,
    get_fetchers,
    get_registry,
    get_trigger,
)
from enclave_control_tower.enclaves.enums import EnclaveStatus, LogSource
from enclave_control_tower.enclaves.triggers import RecordingWorkflowTrigger
from enclave_control_tower.logs.fetchers import (
    ApplicationLogFetcher,
    ContainerLogFetcher,
    FunctionLogFetcher,
    WorkflowLogFetcher,
)
from enclave_control_tower.providers.registry import build_default_registry

OWNER = "0xowner"
OTHER = "0xintruder"

# Fixed "now" for fetchers with trailing windows.
NOW_MS = 1_760_000_000_000


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeLogsClient:
    """In-memory stand-in for a boto3 CloudWatch Logs client.

    ``groups`` maps log group -> stream name -> events (oldest first).
    Streams are listed in insertion order, which is treated as most recent first.
    """

    def __init__(
        self,
        groups: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None,
        failing_streams: Iterable[Tuple[str, str]] = (),
        error: Optional[Exception] = None,
    ):
        self.groups = groups or {}
        self.failing_streams: Set[Tuple[str, str]] = set(failing_streams)
        self.error = error
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def describe_log_streams(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("describe_log_streams", kwargs))
        if self.error is not None:
            raise self.error
        group = kwargs["logGroupName"]
        if group not in self.groups:
            raise client_error("ResourceNotFoundException", "DescribeLogStreams")
        names = list(self.groups[group])[: kwargs.get("limit", 50)]
        return {"logStreams": [{"logStreamName": name} for name in names]}

    def get_log_events(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("get_log_events", kwargs))
        group, stream = kwargs["logGroupName"], kwargs["logStreamName"]
        if (group, stream) in self.failing_streams:
            raise client_error("ThrottlingException", "GetLogEvents")
        events = list(self.groups[group][stream])
        if "startTime" in kwargs:
            events = [e for e in events if kwargs["startTime"] <= e["timestamp"] <= kwargs["endTime"]]
        return {"events": events[-kwargs["limit"]:]}

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


class FakeStepFunctionsClient:
    def __init__(
        self,
        executions: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        histories: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        error: Optional[Exception] = None,
    ):
        self.executions = executions or {}
        self.histories = histories or {}
        self.error = error
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def list_executions(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("list_executions", kwargs))
        if self.error is not None:
            raise self.error
        found = self.executions.get(kwargs["stateMachineArn"], [])
        return {"executions": found[: kwargs["maxResults"]]}

    def get_execution_history(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("get_execution_history", kwargs))
        events = self.histories.get(kwargs["executionArn"], [])
        return {"events": events[: kwargs["maxResults"]]}


class FakeLambdaClient:
    def __init__(self, response: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.response = response if response is not None else {"StatusCode": 202}
        self.error = error
        self.invocations: List[Dict[str, Any]] = []

    def invoke(self, **kwargs: Any) -> Dict[str, Any]:
        self.invocations.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def db_engine():
    """Fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def make_enclave(db_session):
    """Factory for stored enclaves in a given status."""
    service = EnclaveService(db_session)

    def factory(
        status: EnclaveStatus = EnclaveStatus.DEPLOYED,
        owner_id: str = OWNER,
        error_message: Optional[str] = None,
        **kwargs: Any,
    ):
        enclave = service.create_enclave(
            name=kwargs.pop("name", "test-enclave"),
            owner_id=owner_id,
            region=kwargs.pop("region", "us-west-2"),
            provider_id=kwargs.pop("provider_id", "aws-nitro"),
            status=status,
            **kwargs,
        )
        if error_message is not None:
            enclave.error_message = error_message
            db_session.commit()
        return enclave

    return factory


@pytest.fixture
def logs_client():
    return FakeLogsClient()


@pytest.fixture
def sfn_client():
    return FakeStepFunctionsClient()


@pytest.fixture
def trigger():
    return RecordingWorkflowTrigger()


@pytest.fixture
def fetchers(logs_client, sfn_client):
    return {
        LogSource.ECS: ContainerLogFetcher(logs_client, "/ecs/test-terraform-runner"),
        LogSource.STEP_FUNCTIONS: WorkflowLogFetcher(
            sfn_client,
            {"deployment": "arn:sm:deployment", "cleanup": "arn:sm:cleanup"},
        ),
        LogSource.LAMBDA: FunctionLogFetcher(
            logs_client,
            ["/aws/lambda/test-validation", "/aws/lambda/test-status-monitor"],
            clock=lambda: NOW_MS,
        ),
        LogSource.APPLICATION: ApplicationLogFetcher(logs_client, clock=lambda: NOW_MS),
    }


@pytest.fixture
def client(db_session, fetchers, logs_client, trigger):
    """TestClient wired to the in-memory database and fake AWS clients."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_registry] = build_default_registry
    app.dependency_overrides[get_fetchers] = lambda: fetchers
    app.dependency_overrides[get_extractor] = lambda: MeasurementExtractor(logs_client)
    app.dependency_overrides[get_trigger] = lambda: trigger
    yield TestClient(app)
    app.dependency_overrides.clear()
