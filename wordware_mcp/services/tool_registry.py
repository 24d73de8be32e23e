"""Tool registry: discovered Wordware apps, normalized and bound to the run engine."""

import asyncio
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from wordware_mcp.adapters.run_client import WordwareRunClient
from wordware_mcp.infra.error_handler import DiscoveryError
from wordware_mcp.infra.metrics import discovered_tools_total, tool_call_duration, tool_calls_total
from wordware_mcp.models.content import ContentBlock, TextBlock
from wordware_mcp.models.run import RunOutcome
from wordware_mcp.models.tool import ToolDefinition, ToolDescriptor
from wordware_mcp.services.response_unifier import unify
from wordware_mcp.services.run_execution_engine import PollingPolicy, StreamSink, execute_run
from wordware_mcp.services.schema_normalizer import MAX_TOOL_NAME_LENGTH, normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredTool:
    """A normalized definition plus the descriptor it came from."""
    definition: ToolDefinition
    descriptor: ToolDescriptor

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def app_id(self) -> str:
        return self.descriptor.app_id


def unique_tool_name(name: str, taken: Iterable[str]) -> str:
    """
    Derive a name not in `taken` by appending _2, _3, ...

    The base is shortened so the result stays within 64 characters.
    """
    taken = set(taken)
    if name not in taken:
        return name
    counter = 2
    while True:
        suffix = f"_{counter}"
        candidate = f"{name[:MAX_TOOL_NAME_LENGTH - len(suffix)]}{suffix}"
        if candidate not in taken:
            return candidate
        counter += 1


def outcome_to_content(tool_name: str, outcome: RunOutcome) -> List[ContentBlock]:
    """Turn a terminal run outcome into content for the caller."""
    if outcome.kind == "succeeded":
        return unify(outcome.outputs)
    if outcome.kind == "failed":
        return [TextBlock(text=f"Error executing tool {tool_name} (run failed): {outcome.reason}")]
    if outcome.kind == "timed_out":
        return [TextBlock(
            text=f"Error executing tool {tool_name} (polling): run did not complete "
                 f"after {outcome.attempts} status checks"
        )]
    return [TextBlock(text=f"Tool {tool_name} was cancelled before the run completed")]


class ToolRegistry:
    """Read-only mapping of tool name to registered tool, built once at startup."""

    def __init__(
        self,
        tools: Mapping[str, RegisteredTool],
        run_client: WordwareRunClient,
        policy: Optional[PollingPolicy] = None,
    ):
        self._tools = MappingProxyType(dict(tools))
        self._run_client = run_client
        self._policy = policy or PollingPolicy()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def definitions(self) -> List[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    async def invoke(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        sink: Optional[StreamSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ContentBlock]:
        """
        Run a registered tool and return its content.

        Never raises for tool failures: every error is reported as a single
        text block naming the tool and the phase that failed.
        """
        tool = self._tools.get(name)
        if tool is None:
            tool_calls_total.labels(tool_name=name, outcome="error").inc()
            return [TextBlock(text=f"Error: unknown tool '{name}'")]

        inputs = arguments if isinstance(arguments, dict) else {}
        started = time.monotonic()
        try:
            outcome = await execute_run(
                self._run_client,
                tool.app_id,
                inputs,
                policy=self._policy,
                sink=sink,
                cancel_event=cancel_event,
            )
        except Exception as e:
            logger.exception(f"Unexpected error while running tool {name}")
            tool_calls_total.labels(tool_name=name, outcome="error").inc()
            return [TextBlock(text=f"Error in {name} handler (execution): {e}")]
        finally:
            tool_call_duration.labels(tool_name=name).observe(time.monotonic() - started)

        tool_calls_total.labels(tool_name=name, outcome=outcome.kind).inc()
        return outcome_to_content(name, outcome)


def _register(
    tools: Dict[str, RegisteredTool],
    descriptor: ToolDescriptor,
    default_input_name: str,
) -> Optional[RegisteredTool]:
    try:
        definition = normalize(descriptor, default_input_name)
    except (ValidationError, ValueError) as e:
        logger.warning(f"Skipping tool {descriptor.name!r}: normalization failed: {e}")
        discovered_tools_total.labels(status="skipped").inc()
        return None

    if definition.name in tools:
        unique = unique_tool_name(definition.name, tools.keys())
        logger.warning(
            f"Tool name collision: {descriptor.name!r} sanitizes to {definition.name!r}, "
            f"already registered for {tools[definition.name].descriptor.name!r}; registering as {unique!r}"
        )
        definition = definition.model_copy(update={"name": unique})
        discovered_tools_total.labels(status="renamed").inc()

    registered = RegisteredTool(definition=definition, descriptor=descriptor)
    tools[definition.name] = registered
    discovered_tools_total.labels(status="registered").inc()
    return registered


async def build_tool_registry(
    run_client: WordwareRunClient,
    policy: Optional[PollingPolicy] = None,
    app_ids: Optional[List[str]] = None,
    default_input_name: str = "input",
) -> ToolRegistry:
    """
    Discover tools and build the registry.

    A failed discovery call yields an empty registry; a bad descriptor is
    skipped and the rest are still registered.

    Args:
        run_client: Client used for discovery and for every later run
        policy: Polling limits applied to every invocation
        app_ids: Optional allowlist of app IDs or names
        default_input_name: Fallback parameter name ("input" or "query")

    Returns:
        ToolRegistry
    """
    try:
        if app_ids and len(app_ids) == 1:
            record = await run_client.describe_tool(app_ids[0])
            records = [record] if record is not None else []
        else:
            records = await run_client.list_tools()
    except DiscoveryError as e:
        logger.error(f"Tool discovery failed, no tools will be available: {e}")
        records = []

    allowed = set(app_ids or [])
    matched = set()
    tools: Dict[str, RegisteredTool] = {}

    for raw in records:
        try:
            descriptor = ToolDescriptor.from_raw(raw)
        except DiscoveryError as e:
            logger.warning(f"Skipping tool descriptor: {e}")
            discovered_tools_total.labels(status="skipped").inc()
            continue

        if allowed:
            keys = {descriptor.name, descriptor.id} & allowed
            if not keys:
                logger.debug(f"Tool {descriptor.name!r} not in APP_IDS, skipping")
                continue
            matched.update(keys)

        registered = _register(tools, descriptor, default_input_name)
        if registered:
            logger.info(f"Registered tool {registered.name} (app {registered.app_id})")

    missing = allowed - matched
    if missing:
        logger.warning(f"Configured app IDs not found upstream: {sorted(missing)}")

    logger.info(f"Tool registry ready with {len(tools)} tools")
    return ToolRegistry(tools, run_client, policy)
