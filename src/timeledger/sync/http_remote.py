"""HTTP client for a remote sync backend."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from uuid import UUID

import requests
from requests.exceptions import ConnectionError, RequestException, Timeout

from .. import __version__
from ..core.errors import ConflictError, TransportError
from ..utils.logging_config import get_logger
from .circuit_breaker import CircuitBreaker, CircuitOpenError
from .remote import PushAck, RemoteRecord, RemoteStore
from .retry import RETRYABLE_STATUSES, retry_delay

logger = get_logger("sync")


class RetryableResponse(Exception):
    """A response the breaker counts as a failure and the client may retry."""

    def __init__(self, response: requests.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class HttpRemoteStore(RemoteStore):
    """
    Remote store reached over JSON HTTP.

    ``POST <base_url>/v1/sync/pull`` and ``POST <base_url>/v1/sync/push``.
    Blocking requests run in a worker thread. Timeouts, connection errors,
    429 and 5xx responses are retried with exponential backoff and jitter
    (``Retry-After`` honoured); 409 maps to ``ConflictError`` immediately.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_secs: float = 10.0,
        max_attempts: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 10.0,
        backoff_jitter_ratio: float = 0.2,
        circuit_breaker: Optional[CircuitBreaker] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the remote client.

        Args:
            base_url: Remote backend root URL
            token: Bearer token sent with every request
            timeout_secs: Per-request timeout
            max_attempts: Attempts per call including the first
            backoff_base_seconds: Base of the exponential backoff
            backoff_max_seconds: Backoff ceiling
            backoff_jitter_ratio: Jitter as a ratio of the delay
            circuit_breaker: Breaker shared across calls; one is created if omitted
            session: requests session; one is created if omitted
            sleep: Awaitable sleep, replaceable in tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_secs = timeout_secs
        self.max_attempts = max(1, max_attempts)
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.backoff_jitter_ratio = backoff_jitter_ratio
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._sleep = sleep

        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": f"timeledger/{__version__}", "Content-Type": "application/json"}
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _send(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        url = self.base_url + path
        body = json.dumps(payload, separators=(",", ":"))

        def make_request() -> requests.Response:
            response = self.session.post(url, data=body, timeout=self.timeout_secs)
            if response.status_code in RETRYABLE_STATUSES:
                raise RetryableResponse(response)
            return response

        return self.circuit_breaker.call(make_request)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        last_error = "no attempt made"
        last_status: Optional[int] = None

        for attempt in range(self.max_attempts):
            retry_after = None
            try:
                response = await asyncio.to_thread(self._send, path, payload)
            except CircuitOpenError as e:
                raise TransportError(f"Remote unavailable: {e}") from e
            except RetryableResponse as e:
                last_status = e.response.status_code
                last_error = f"HTTP {last_status} from {path}"
                retry_after = e.response.headers.get("Retry-After")
            except Timeout:
                last_status = None
                last_error = f"Request timeout for {path}"
            except ConnectionError as e:
                last_status = None
                last_error = f"Connection error for {path}: {e}"
            except RequestException as e:
                raise TransportError(f"Request error for {path}: {e}") from e
            else:
                return self._handle_response(path, response)

            if attempt + 1 < self.max_attempts:
                delay = retry_delay(
                    attempt,
                    retry_after,
                    datetime.now(timezone.utc),
                    self.backoff_base_seconds,
                    self.backoff_max_seconds,
                    self.backoff_jitter_ratio,
                )
                logger.warning(f"{last_error}; retrying in {delay:.2f}s")
                await self._sleep(delay)

        raise TransportError(
            f"{last_error} after {self.max_attempts} attempt(s)", status_code=last_status
        )

    def _handle_response(self, path: str, response: requests.Response) -> Dict[str, Any]:
        body = self._json(response)

        if response.status_code == 409:
            conflicts = [UUID(str(record_id)) for record_id in body.get("conflicts", [])]
            raise ConflictError(
                body.get("detail") or f"Remote rejected push with {len(conflicts)} conflict(s)",
                record_ids=conflicts,
            )

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"HTTP {response.status_code} from {path}: {body.get('detail', response.reason)}",
                status_code=response.status_code,
            )

        return body

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def pull(self, user_id: str, since: Optional[datetime]) -> List[RemoteRecord]:
        body = await self._post(
            "/v1/sync/pull",
            {"user_id": user_id, "since": since.isoformat() if since else None},
        )
        try:
            return [RemoteRecord.from_json(item) for item in body.get("records", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed pull response: {e}") from e

    async def push(self, user_id: str, records: Sequence[RemoteRecord]) -> List[PushAck]:
        body = await self._post(
            "/v1/sync/push",
            {"user_id": user_id, "records": [record.to_json() for record in records]},
        )
        try:
            return [
                PushAck(id=UUID(str(ack["id"])), accepted_version=int(ack["accepted_version"]))
                for ack in body.get("acks", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed push response: {e}") from e
