"""Tests for the HTTP remote store client."""

import json
from datetime import datetime, timezone
from unittest.mock import Mock
from uuid import uuid4

import pytest
import requests
from requests.exceptions import ConnectionError, Timeout

from timeledger.core.enums import EntityKind
from timeledger.core.errors import ConflictError, TransportError
from timeledger.sync.circuit_breaker import CircuitBreaker
from timeledger.sync.http_remote import HttpRemoteStore
from timeledger.sync.remote import RemoteRecord

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_response(status_code=200, body=None, headers=None):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.headers = headers or {}
    response.reason = "reason"
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


def make_record(version=1):
    record_id = uuid4()
    return RemoteRecord(
        entity_kind=EntityKind.DOMAINS,
        record={
            "id": str(record_id),
            "version": version,
            "created_at": T0.isoformat(),
            "updated_at": T0.isoformat(),
            "deleted_at": None,
            "name": "Work",
            "color": "#000000",
            "order": 0,
            "archived_at": None,
        },
        version=version,
    )


class Sleeps:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def session():
    mock_session = Mock(spec=requests.Session)
    mock_session.headers = {}
    return mock_session


@pytest.fixture
def sleeps():
    return Sleeps()


@pytest.fixture
def http_remote(session, sleeps):
    return HttpRemoteStore(
        "https://sync.example.com/",
        token="secret",
        max_attempts=3,
        backoff_jitter_ratio=0.0,
        session=session,
        sleep=sleeps,
    )


@pytest.mark.unit
class TestRequests:
    """Test request construction and response parsing."""

    def test_session_headers(self, http_remote, session):
        assert session.headers["Authorization"] == "Bearer secret"
        assert session.headers["Content-Type"] == "application/json"
        assert session.headers["User-Agent"].startswith("timeledger/")

    @pytest.mark.asyncio
    async def test_pull_posts_since_and_parses_records(self, http_remote, session):
        record = make_record(version=4)
        session.post.return_value = make_response(200, {"records": [record.to_json()]})

        pulled = await http_remote.pull("user-1", since=T0)

        url = session.post.call_args.args[0]
        payload = json.loads(session.post.call_args.kwargs["data"])
        assert url == "https://sync.example.com/v1/sync/pull"
        assert payload == {"user_id": "user-1", "since": T0.isoformat()}
        assert pulled == [record]

    @pytest.mark.asyncio
    async def test_pull_without_checkpoint(self, http_remote, session):
        session.post.return_value = make_response(200, {"records": []})

        assert await http_remote.pull("user-1", since=None) == []
        assert json.loads(session.post.call_args.kwargs["data"])["since"] is None

    @pytest.mark.asyncio
    async def test_push_returns_acks(self, http_remote, session):
        record = make_record(version=2)
        session.post.return_value = make_response(
            200, {"acks": [{"id": str(record.id), "accepted_version": 2}]}
        )

        acks = await http_remote.push("user-1", [record])

        assert session.post.call_args.args[0] == "https://sync.example.com/v1/sync/push"
        assert [(ack.id, ack.accepted_version) for ack in acks] == [(record.id, 2)]

    @pytest.mark.asyncio
    async def test_malformed_pull_body(self, http_remote, session):
        session.post.return_value = make_response(200, {"records": [{"version": 1}]})

        with pytest.raises(TransportError, match="Malformed pull response"):
            await http_remote.pull("user-1", since=None)


@pytest.mark.unit
class TestErrorClassification:
    """Test which failures are retried and how they surface."""

    @pytest.mark.asyncio
    async def test_conflict_is_not_retried(self, http_remote, session, sleeps):
        conflict_id = uuid4()
        session.post.return_value = make_response(409, {"conflicts": [str(conflict_id)]})

        with pytest.raises(ConflictError) as exc_info:
            await http_remote.push("user-1", [make_record()])

        assert exc_info.value.record_ids == [conflict_id]
        assert session.post.call_count == 1
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_server_error_retried_then_succeeds(self, http_remote, session, sleeps):
        session.post.side_effect = [
            make_response(503),
            make_response(200, {"records": []}),
        ]

        assert await http_remote.pull("user-1", since=None) == []
        assert session.post.call_count == 2
        assert sleeps.delays == [0.5]

    @pytest.mark.asyncio
    async def test_retry_after_honoured(self, http_remote, session, sleeps):
        session.post.side_effect = [
            make_response(429, headers={"Retry-After": "2"}),
            make_response(200, {"records": []}),
        ]

        await http_remote.pull("user-1", since=None)

        assert sleeps.delays == [2.0]

    @pytest.mark.asyncio
    async def test_retries_exhausted_raise_transport_error(self, http_remote, session, sleeps):
        session.post.return_value = make_response(500)

        with pytest.raises(TransportError, match="after 3 attempt") as exc_info:
            await http_remote.pull("user-1", since=None)

        assert exc_info.value.status_code == 500
        assert session.post.call_count == 3
        assert sleeps.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [Timeout("slow"), ConnectionError("refused")])
    async def test_network_errors_become_transport_errors(self, http_remote, session, error):
        session.post.side_effect = error

        with pytest.raises(TransportError):
            await http_remote.pull("user-1", since=None)

        assert session.post.call_count == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, http_remote, session):
        session.post.return_value = make_response(400, {"detail": "bad payload"})

        with pytest.raises(TransportError, match="bad payload"):
            await http_remote.push("user-1", [make_record()])

        assert session.post.call_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self, session, sleeps):
        breaker = CircuitBreaker(failure_threshold=1)
        http_remote = HttpRemoteStore(
            "https://sync.example.com",
            max_attempts=1,
            circuit_breaker=breaker,
            session=session,
            sleep=sleeps,
        )
        session.post.return_value = make_response(502)

        with pytest.raises(TransportError):
            await http_remote.pull("user-1", since=None)

        with pytest.raises(TransportError, match="Remote unavailable"):
            await http_remote.pull("user-1", since=None)

        assert session.post.call_count == 1
