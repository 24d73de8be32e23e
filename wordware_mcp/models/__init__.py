from .content import ContentBlock, HtmlBlock, TextBlock
from .run import Cancelled, Failed, RunHandle, RunOutcome, RunStatus, Succeeded, TimedOut
from .tool import InputSchema, PropertySchema, ToolDefinition, ToolDescriptor

__all__ = [
    "Cancelled",
    "ContentBlock",
    "Failed",
    "HtmlBlock",
    "InputSchema",
    "PropertySchema",
    "RunHandle",
    "RunOutcome",
    "RunStatus",
    "Succeeded",
    "TextBlock",
    "TimedOut",
    "ToolDefinition",
    "ToolDescriptor",
]
