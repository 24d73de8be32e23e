"""Run execution engine: drives one invocation from submission to a terminal outcome."""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from wordware_mcp.adapters.run_client import WordwareRunClient, error_message
from wordware_mcp.infra.config import Config
from wordware_mcp.infra.error_handler import (
    RetryableError,
    RunFailure,
    RunTimeout,
    SubmissionError,
    TransientPollError,
)
from wordware_mcp.infra.metrics import run_poll_attempts_total, run_stream_records_total
from wordware_mcp.models.run import (
    FAILURE_STATUSES,
    SUCCESS_STATUSES,
    Cancelled,
    Failed,
    RunHandle,
    RunOutcome,
    Succeeded,
    TimedOut,
)

logger = logging.getLogger(__name__)

StreamSink = Callable[[Any], Union[None, Awaitable[None]]]


class RunState(str, Enum):
    """Lifecycle states of a single run."""
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    POLLING = "polling"
    SUCCEEDED = "succeeded"  # terminal
    FAILED = "failed"  # terminal
    TIMED_OUT = "timed_out"  # terminal
    CANCELLED = "cancelled"  # terminal


TERMINAL_STATES = frozenset({RunState.SUCCEEDED, RunState.FAILED, RunState.TIMED_OUT, RunState.CANCELLED})

_OUTCOME_STATES = {
    "succeeded": RunState.SUCCEEDED,
    "failed": RunState.FAILED,
    "timed_out": RunState.TIMED_OUT,
    "cancelled": RunState.CANCELLED,
}


@dataclass(frozen=True)
class PollingPolicy:
    """How long a run may take before it is reported as timed out."""
    interval_seconds: float = 1.0
    max_attempts: int = 30
    deadline_seconds: Optional[float] = None

    @classmethod
    def from_config(cls, cfg: Config) -> "PollingPolicy":
        return cls(
            interval_seconds=cfg.POLL_INTERVAL_SECONDS,
            max_attempts=cfg.POLL_MAX_ATTEMPTS,
            deadline_seconds=cfg.RUN_DEADLINE_SECONDS,
        )


def terminal_outcome_from_record(record: Any) -> Optional[RunOutcome]:
    """
    Recognize a stream record that settles the run.

    Two shapes are terminal: a record carrying a terminal `status`, and an
    `outputs` chunk (`{"type": "chunk", "value": {"type": "outputs", "values": ...}}`).
    """
    if not isinstance(record, dict):
        return None

    status = record.get("status")
    if isinstance(status, str):
        status = status.lower()
        if status in SUCCESS_STATUSES and record.get("outputs") is not None:
            return Succeeded(outputs=record["outputs"])
        if status in FAILURE_STATUSES:
            return Failed(reason=error_message(record.get("error")) or "Run failed")

    value = record.get("value")
    if record.get("type") == "chunk" and isinstance(value, dict) and value.get("type") == "outputs" and "values" in value:
        return Succeeded(outputs=value["values"])

    return None


class RunLifecycle:
    """State machine for one invocation. Never shared between invocations.

    Attributes:
        state: Current RunState
        handle: RunHandle once submission succeeded
        poll_attempts: Status fetches issued so far
        partial_outputs: Stream records that reached no sink, either because
            none was given or because it raised. Kept for inspection by the
            holder of the lifecycle only: they are not part of the outcome
            and never reach the tool result.
    """

    def __init__(
        self,
        run_client: WordwareRunClient,
        app_id: str,
        inputs: Dict[str, Any],
        policy: Optional[PollingPolicy] = None,
        sink: Optional[StreamSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self._client = run_client
        self._app_id = app_id
        self._inputs = inputs
        self._policy = policy or PollingPolicy()
        self._sink = sink
        self._cancel_event = cancel_event

        self.state = RunState.SUBMITTING
        self.handle: Optional[RunHandle] = None
        self.poll_attempts = 0
        self.partial_outputs: List[Any] = []
        self._started_at = 0.0

    def _transition(self, new_state: RunState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Run already terminal ({self.state.value}), cannot enter {new_state.value}")
        logger.debug(f"Run of {self._app_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _finish(self, outcome: RunOutcome) -> RunOutcome:
        self._transition(_OUTCOME_STATES[outcome.kind])
        run_id = self.handle.run_id if self.handle else None
        logger.info(
            f"Run {run_id} of {self._app_id} finished: {outcome.kind}",
            extra={
                "run_id": run_id,
                "app_id": self._app_id,
                "poll_attempts": self.poll_attempts,
                "buffered_records": len(self.partial_outputs),
            },
        )
        return outcome

    def _cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _remaining(self) -> Optional[float]:
        if self._policy.deadline_seconds is None:
            return None
        return self._policy.deadline_seconds - (time.monotonic() - self._started_at)

    def _deadline_passed(self) -> bool:
        remaining = self._remaining()
        return remaining is not None and remaining <= 0

    async def run(self) -> RunOutcome:
        self._started_at = time.monotonic()

        if self._cancelled():
            return self._finish(Cancelled())

        try:
            self.handle = await self._client.submit_run(self._app_id, self._inputs)
        except SubmissionError as e:
            logger.warning(f"Submission of {self._app_id} failed: {e}")
            return self._finish(Failed(reason=str(e)))

        if self.handle.stream_url:
            self._transition(RunState.STREAMING)
            outcome = await self._guarded(self._stream(self.handle.stream_url), timeout=self._remaining())
            if outcome is not None:
                return self._finish(outcome)

        # Stream end alone does not say whether the run succeeded
        self._transition(RunState.POLLING)
        try:
            outcome = await self._poll(self.handle.run_id)
        except RunFailure as e:
            outcome = Failed(reason=str(e))
        except RunTimeout as e:
            logger.warning(str(e))
            outcome = TimedOut(attempts=self.poll_attempts)
        return self._finish(outcome)

    async def _guarded(self, coro: Awaitable[Optional[RunOutcome]], timeout: Optional[float]) -> Optional[RunOutcome]:
        """Await coro until it completes, the cancel event fires or the deadline passes."""
        task = asyncio.ensure_future(coro)
        waiters = {task}
        cancel_waiter = None
        if self._cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(self._cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=max(timeout, 0) if timeout is not None else None,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            pending = [w for w in waiters if not w.done()]
            for waiter in pending:
                waiter.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        if task in done:
            return task.result()
        if cancel_waiter is not None and cancel_waiter in done:
            return Cancelled()
        return TimedOut(attempts=self.poll_attempts)

    async def _stream(self, stream_url: str) -> Optional[RunOutcome]:
        stream = self._client.stream_run(stream_url)
        try:
            async with aclosing(stream):
                async for record in stream:
                    if self._cancelled():
                        return Cancelled()
                    run_stream_records_total.inc()

                    outcome = terminal_outcome_from_record(record)
                    if outcome is not None:
                        return outcome

                    await self._emit(record)
        except RetryableError as e:
            logger.warning(f"Stream for {self._app_id} interrupted, falling back to polling: {e}")

        return None

    async def _emit(self, record: Any) -> None:
        if self._sink is None:
            self.partial_outputs.append(record)
            return
        try:
            result = self._sink(record)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            # A broken sink must not lose the record or the run
            logger.warning(f"Stream sink for {self._app_id} failed, buffering record: {e}")
            self.partial_outputs.append(record)

    async def _sleep(self, delay: float) -> bool:
        """Wait between attempts. Returns True if cancelled while waiting."""
        remaining = self._remaining()
        if remaining is not None:
            delay = min(delay, max(remaining, 0))

        if self._cancel_event is None:
            await asyncio.sleep(delay)
            return False
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _poll(self, run_id: str) -> RunOutcome:
        """
        Poll until the run settles.

        Raises:
            RunFailure: If the run reports failure
            RunTimeout: If attempts or the deadline run out first
        """
        max_attempts = self._policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            if self._cancelled():
                return Cancelled()
            if self._deadline_passed():
                break

            self.poll_attempts = attempt
            try:
                status = await self._client.get_run_status(run_id)
            except TransientPollError as e:
                run_poll_attempts_total.labels(result="error").inc()
                logger.warning(f"Poll attempt {attempt}/{max_attempts} for run {run_id} failed: {e}")
            else:
                if status.is_success:
                    run_poll_attempts_total.labels(result="terminal").inc()
                    return Succeeded(outputs=status.outputs)
                if status.is_failure:
                    run_poll_attempts_total.labels(result="terminal").inc()
                    raise RunFailure(status.error or "Run failed")
                run_poll_attempts_total.labels(result="pending").inc()
                logger.debug(f"Run {run_id} is {status.status} (attempt {attempt}/{max_attempts})")

            if attempt < max_attempts and await self._sleep(self._policy.interval_seconds):
                return Cancelled()

        raise RunTimeout(f"Run {run_id} of {self._app_id} did not complete after {self.poll_attempts} status checks")


async def execute_run(
    run_client: WordwareRunClient,
    app_id: str,
    inputs: Dict[str, Any],
    policy: Optional[PollingPolicy] = None,
    sink: Optional[StreamSink] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> RunOutcome:
    """
    Execute one run of an app end to end.

    Args:
        run_client: Client used for every remote call
        app_id: Wordware app identifier
        inputs: Validated input parameters
        policy: Polling limits (defaults: 30 attempts, 1s apart)
        sink: Optional callable receiving partial stream records
        cancel_event: Optional event that stops the run when set

    Returns:
        Exactly one terminal RunOutcome
    """
    lifecycle = RunLifecycle(run_client, app_id, inputs, policy=policy, sink=sink, cancel_event=cancel_event)
    return await lifecycle.run()
