"""Normalize remote tool descriptors into strict MCP tool definitions."""

import hashlib
import logging
import re
from typing import Any, Dict, Mapping

from wordware_mcp.models.tool import InputSchema, PropertySchema, ToolDefinition, ToolDescriptor

logger = logging.getLogger(__name__)

MAX_TOOL_NAME_LENGTH = 64

# Placeholder property some upstreams emit for tools without real parameters
SENTINEL_PROPERTY = "random_string"

_TYPE_MAP = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
}


def sanitize_tool_name(raw_name: str) -> str:
    """
    Convert a remote app name into a valid MCP tool name.

    Whitespace runs become a single underscore, characters outside
    [A-Za-z0-9_-] are removed and the result is cut to 64 characters.
    A name that sanitizes to nothing gets a stable placeholder derived
    from the raw name, so two different empty-sanitizing names stay distinct.
    """
    sanitized = re.sub(r"\s+", "_", raw_name)
    sanitized = re.sub(r"[^A-Za-z0-9_-]", "", sanitized)
    sanitized = sanitized[:MAX_TOOL_NAME_LENGTH]

    if not sanitized:
        digest = hashlib.sha256(raw_name.encode("utf-8")).hexdigest()[:8]
        sanitized = f"tool_{digest}"
        logger.warning(f"Tool name {raw_name!r} is empty after sanitization, using {sanitized}")

    return sanitized


def map_property_type(prop: Any) -> str:
    """Map a declared JSON Schema property type onto string|number|boolean."""
    if not isinstance(prop, Mapping):
        return "string"
    declared = prop.get("type")
    if isinstance(declared, list):
        # ["string", "null"] style unions: first known primitive wins
        for candidate in declared:
            if isinstance(candidate, str) and candidate in _TYPE_MAP:
                return _TYPE_MAP[candidate]
        return "string"
    if isinstance(declared, str):
        return _TYPE_MAP.get(declared, "string")
    return "string"


def _usable_properties(input_schema: Any) -> Mapping[str, Any]:
    """Return the upstream properties if they describe real parameters, else an empty mapping."""
    if not isinstance(input_schema, Mapping):
        return {}
    properties = input_schema.get("properties")
    if not isinstance(properties, Mapping) or not properties:
        return {}
    if len(properties) == 1 and SENTINEL_PROPERTY in properties:
        return {}
    return properties


def default_input_schema(default_input_name: str = "input") -> InputSchema:
    """Single required string parameter used when nothing better is known."""
    return InputSchema(
        properties={default_input_name: PropertySchema(type="string")},
        required=[default_input_name],
    )


def normalize_input_schema(input_schema: Any, default_input_name: str = "input") -> InputSchema:
    """
    Recover a strict input schema from a possibly malformed upstream schema.

    Every declared property is required; upstream `required` lists are not
    inherited. additionalProperties is always false.
    """
    properties = _usable_properties(input_schema)
    if not properties:
        return default_input_schema(default_input_name)

    normalized: Dict[str, PropertySchema] = {}
    for key, prop in properties.items():
        normalized[str(key)] = PropertySchema(type=map_property_type(prop))

    return InputSchema(properties=normalized, required=list(normalized.keys()))


def normalize(descriptor: ToolDescriptor, default_input_name: str = "input") -> ToolDefinition:
    """
    Normalize one descriptor. Never fails.

    Args:
        descriptor: Raw descriptor from discovery
        default_input_name: Name of the fallback parameter ("input" or "query")

    Returns:
        ToolDefinition with a valid name and a strict schema
    """
    return ToolDefinition(
        name=sanitize_tool_name(descriptor.name),
        description=descriptor.description,
        input_schema=normalize_input_schema(descriptor.input_schema, default_input_name),
    )
