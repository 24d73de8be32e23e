"""Wordware API client: tool discovery, run submission, status polling and run streams."""

import json
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from wordware_mcp.infra.config import Config
from wordware_mcp.infra.error_handler import (
    APIError,
    ConfigurationError,
    DiscoveryError,
    RetryableError,
    SubmissionError,
    TransientPollError,
    retry_with_backoff,
    wrap_http_error,
)
from wordware_mcp.models.run import RunHandle, RunStatus

logger = logging.getLogger(__name__)

# Bracketed "[timestamp] [LEVEL] [context]" diagnostic lines
_LOG_LINE_RE = re.compile(r"^\[.*?\] \[.*?\] \[.*?\]")
_LEGACY_LOG_PREFIXES = ("INFO:", "DEBUG:", "WARN:", "ERROR:")

# Guard against services that keep returning a cursor forever
MAX_DISCOVERY_PAGES = 100


def is_log_line(line: str) -> bool:
    """Return True for diagnostic lines interleaved in a run stream."""
    return bool(_LOG_LINE_RE.match(line)) or line.startswith(_LEGACY_LOG_PREFIXES)


def parse_stream_line(line: str) -> Optional[Any]:
    """
    Sanitize and parse one line of a run stream.

    Args:
        line: Raw line without the trailing newline

    Returns:
        Parsed JSON payload, or None for blank, diagnostic or unparsable lines
    """
    text = line.strip()
    if not text or is_log_line(text):
        return None

    # Tolerate server-sent-events framing
    if text.startswith("data:"):
        text = text[len("data:"):].strip()
        if not text or text == "[DONE]":
            return None

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug(f"Discarding non-JSON stream line: {text[:120]}")
        return None


def error_message(error: Any) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, str):
        return error or None
    if isinstance(error, dict):
        message = error.get("message") or error.get("detail")
        if message:
            return str(message)
    return json.dumps(error, default=str)


class WordwareRunClient:
    """Client for the remote execution service.

    Owns every outbound call of the bridge. Discovery and health calls are
    retried with backoff; run submission is retried only when the connection
    could not be established, so a run is never created twice. Status fetches
    are single attempts: the poll loop above decides what a failure costs.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.wordware.ai/v1",
        rpc_url: str = "http://localhost:9000/rpc",
        service_url: str = "http://localhost:9000",
        run_version: str = "1.0",
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_initial_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError("WORDWARE_API_KEY environment variable is not set")
        self._api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.rpc_url = rpc_url
        self.service_url = service_url.rstrip("/")
        self.run_version = run_version
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay
        self._transport = transport
        self._rpc_id = 0

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "WordwareRunClient":
        return cls(
            api_key=cfg.WORDWARE_API_KEY,
            api_url=cfg.WORDWARE_API_URL,
            rpc_url=cfg.WORDWARE_RPC_URL,
            service_url=cfg.WORDWARE_SERVICE_URL,
            run_version=cfg.RUN_VERSION,
            timeout=cfg.HTTP_TIMEOUT_SECONDS,
            max_retries=cfg.HTTP_MAX_RETRIES,
            transport=transport,
        )

    def _headers(self) -> Dict[str, str]:
        # SECURITY: Never log these headers
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    def _log_retry(self, error: Exception, attempt: int) -> None:
        logger.warning(f"Retrying Wordware request (attempt {attempt}/{self.max_retries}): {error}")

    async def _rpc(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a JSON-RPC 2.0 call against the tool service.

        Raises:
            RetryableError: On transport, HTTP or JSON-RPC level failures
        """
        self._rpc_id += 1
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": self._rpc_id, "method": method}
        if params is not None:
            payload["params"] = params

        async def _call() -> Any:
            async with self._client() as client:
                try:
                    response = await client.post(self.rpc_url, json=payload)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    raise wrap_http_error(e) from e

            try:
                data = response.json()
            except ValueError as e:
                raise APIError(f"Invalid JSON response from {method}") from e

            if isinstance(data, dict) and data.get("error"):
                error = data["error"]
                message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
                raise APIError(f"JSON-RPC error: {message}", retryable=False)

            return data.get("result") if isinstance(data, dict) else None

        return await retry_with_backoff(
            _call,
            max_retries=self.max_retries,
            initial_delay=self.retry_initial_delay,
            retryable_exceptions=(RetryableError,),
            on_retry=self._log_retry,
        )

    async def list_tools(self) -> List[Any]:
        """
        Fetch every tool descriptor, following pagination cursors.

        Returns:
            Raw descriptor records, unparsed

        Raises:
            DiscoveryError: If a page cannot be fetched or has an unexpected shape
        """
        records: List[Any] = []
        cursor: Optional[str] = None
        seen_cursors = set()

        for _ in range(MAX_DISCOVERY_PAGES):
            try:
                result = await self._rpc("tools/list", {"cursor": cursor})
            except RetryableError as e:
                raise DiscoveryError(f"Failed to fetch available tools: {e}") from e

            if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
                raise DiscoveryError("Invalid tools/list response: missing result.tools array")

            records.extend(result["tools"])

            cursor = result.get("nextCursor")
            if not cursor:
                break
            if cursor in seen_cursors:
                logger.warning(f"Discovery cursor {cursor!r} repeated, stopping pagination")
                break
            seen_cursors.add(cursor)
        else:
            logger.warning(f"Discovery stopped after {MAX_DISCOVERY_PAGES} pages")

        logger.info(f"Discovered {len(records)} tool descriptors")
        return records

    async def describe_tool(self, app_id: str) -> Optional[Dict[str, Any]]:
        """
        Find a single descriptor by app ID or name.

        Returns:
            The raw descriptor, or None if the service does not list it
        """
        for record in await self.list_tools():
            if isinstance(record, dict) and app_id in (record.get("id"), record.get("name")):
                return record
        return None

    async def submit_run(self, app_id: str, inputs: Dict[str, Any]) -> RunHandle:
        """
        Create a new run of an app.

        Args:
            app_id: Wordware app identifier
            inputs: Parameter map for the run

        Returns:
            RunHandle with run ID and optional stream URL

        Raises:
            SubmissionError: If the run could not be created
        """
        url = f"{self.api_url}/apps/{app_id}/runs"
        body = {"version": self.run_version, "inputs": inputs}

        async def _post() -> httpx.Response:
            async with self._client() as client:
                return await client.post(url, json=body)

        try:
            # Only connection failures are retried: the request never reached the service
            response = await retry_with_backoff(
                _post,
                max_retries=self.max_retries,
                initial_delay=self.retry_initial_delay,
                retryable_exceptions=(httpx.ConnectError,),
                on_retry=self._log_retry,
            )
        except httpx.HTTPError as e:
            raise SubmissionError(f"Run submission failed: {wrap_http_error(e)}") from e

        if not response.is_success:
            raise SubmissionError(
                response.text or f"Run submission failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json().get("data") or {}
            run_id = data.get("id")
            stream_url = (data.get("links") or {}).get("stream")
        except (ValueError, AttributeError) as e:
            raise SubmissionError(f"Invalid run submission response: {e}") from e

        if not run_id:
            raise SubmissionError("Run submission response did not include a run ID")
        if stream_url is not None and not isinstance(stream_url, str):
            raise SubmissionError(f"Invalid stream link in run submission response: {stream_url!r}")

        logger.info(f"Submitted run {run_id} for app {app_id}")
        return RunHandle(run_id=str(run_id), stream_url=stream_url or None)

    async def get_run_status(self, run_id: str) -> RunStatus:
        """
        Fetch the current status of a run. Single attempt.

        Raises:
            TransientPollError: If the status could not be fetched or parsed
        """
        url = f"{self.api_url}/runs/{run_id}"
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransientPollError(f"Poll error for run {run_id}: {wrap_http_error(e)}") from e

        try:
            attributes = (response.json().get("data") or {}).get("attributes") or {}
        except (ValueError, AttributeError) as e:
            raise TransientPollError(f"Invalid status response for run {run_id}") from e
        if not isinstance(attributes, dict):
            raise TransientPollError(f"Invalid status attributes for run {run_id}: expected an object")

        return RunStatus(
            status=str(attributes.get("status") or "unknown"),
            outputs=attributes.get("outputs"),
            error=error_message(attributes.get("error")),
        )

    async def stream_run(self, stream_url: str) -> AsyncIterator[Any]:
        """
        Consume a run's event stream.

        Yields:
            Parsed JSON payloads; diagnostic and blank lines are dropped

        Raises:
            RetryableError: If the stream cannot be opened or breaks mid-read
        """
        # No read timeout: runs may stay silent for long stretches
        timeout = httpx.Timeout(self.timeout, read=None)
        try:
            async with self._client(timeout=timeout) as client:
                async with client.stream("GET", stream_url) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        record = parse_stream_line(line)
                        if record is not None:
                            yield record
        except httpx.HTTPError as e:
            raise wrap_http_error(e) from e

    async def check_health(self) -> bool:
        """Return True if the service health endpoint reports ok."""
        try:
            async with self._client() as client:
                response = await client.get(f"{self.service_url}/api/health")
            if response.is_success and response.json().get("status") == "ok":
                return True
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug(f"Health check failed: {e}")
        return False

    async def ping(self) -> bool:
        """Return True if the JSON-RPC endpoint answers ping with pong."""
        try:
            result = await self._rpc("ping")
        except RetryableError as e:
            logger.debug(f"Ping failed: {e}")
            return False
        return isinstance(result, dict) and result.get("status") == "pong"
