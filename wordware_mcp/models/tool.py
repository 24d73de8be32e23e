"""Tool descriptor (remote, raw) and tool definition (normalized) models."""

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Dict, Any, List, Literal, Optional

from wordware_mcp.infra.error_handler import DiscoveryError

TOOL_NAME_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"

PrimitiveType = Literal["string", "number", "boolean"]


class ToolDescriptor(BaseModel):
    """Raw tool description supplied by the remote service at discovery time."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., min_length=1, description="App name as reported upstream")
    description: str = Field(default="", description="App description")
    input_schema: Any = Field(default=None, alias="inputSchema", description="Possibly malformed JSON Schema")
    id: Optional[str] = Field(default=None, description="App ID, when the service reports one")

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @property
    def app_id(self) -> str:
        """Identifier used to submit runs for this tool."""
        return self.id or self.name

    @classmethod
    def from_raw(cls, raw: Any) -> "ToolDescriptor":
        """
        Parse one raw discovery record.

        Raises:
            DiscoveryError: If the record is not an object or lacks a usable name
        """
        if not isinstance(raw, dict):
            raise DiscoveryError(f"Tool descriptor must be an object, got {type(raw).__name__}")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise DiscoveryError(f"Invalid tool descriptor {raw.get('name')!r}: {e.error_count()} validation error(s)") from e


class PropertySchema(BaseModel):
    """One normalized input parameter."""
    type: PrimitiveType = "string"


class InputSchema(BaseModel):
    """Strict object schema accepted by MCP clients."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["object"] = "object"
    properties: Dict[str, PropertySchema] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)
    additional_properties: Literal[False] = Field(default=False, alias="additionalProperties")

    def to_json_schema(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ToolDefinition(BaseModel):
    """Normalized tool definition registered with the MCP server."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., pattern=TOOL_NAME_PATTERN, description="Sanitized tool name")
    description: str = Field(..., description="Tool description")
    input_schema: InputSchema = Field(..., alias="inputSchema", description="Normalized input schema")
