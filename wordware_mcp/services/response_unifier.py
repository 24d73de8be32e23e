"""Unify shape-varying run outputs into an ordered list of content blocks.

Run outputs differ from app to app. The unifier tries an ordered list of
rules, each a (predicate, transform) pair, and the first match wins. The
last rule always matches, so unification never fails.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping

from pydantic import ValidationError

from wordware_mcp.models.content import ContentBlock, HtmlBlock, TextBlock, content_blocks_adapter

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "No response received from the tool."


@dataclass(frozen=True)
class UnificationRule:
    name: str
    matches: Callable[[Any], bool]
    apply: Callable[[Any], List[ContentBlock]]


def to_pretty_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _has_key(key: str) -> Callable[[Any], bool]:
    return lambda value: isinstance(value, Mapping) and value.get(key) is not None


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else to_pretty_json(value)


def _is_content_array(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    content = value.get("content")
    if not isinstance(content, list) or not content:
        return False
    try:
        content_blocks_adapter.validate_python(content)
    except ValidationError:
        return False
    return True


def _pass_through_content(value: Any) -> List[ContentBlock]:
    return content_blocks_adapter.validate_python(value["content"])


def _text_field(value: Mapping) -> List[ContentBlock]:
    field = "markdown" if value.get("markdown") is not None else "text"
    return [TextBlock(text=_as_text(value[field]))]


def _html_field(value: Mapping) -> List[ContentBlock]:
    return [HtmlBlock(html=_as_text(value["html"]))]


def _data_field(value: Mapping) -> List[ContentBlock]:
    return [TextBlock(text=_as_text(value["data"]))]


def _fallback(value: Any) -> List[ContentBlock]:
    if value is None:
        return [TextBlock(text=NO_RESPONSE_MESSAGE)]
    return [TextBlock(text=to_pretty_json(value))]


RULES: List[UnificationRule] = [
    UnificationRule("content", _is_content_array, _pass_through_content),
    UnificationRule("text", lambda v: _has_key("markdown")(v) or _has_key("text")(v), _text_field),
    UnificationRule("html", _has_key("html"), _html_field),
    UnificationRule("data", _has_key("data"), _data_field),
    UnificationRule("string", lambda v: isinstance(v, str), lambda v: [TextBlock(text=v)]),
    UnificationRule("json", lambda v: True, _fallback),
]


def unwrap_output(raw: Any) -> Any:
    """
    Unwrap a nested `output` field.

    Looks at the top level first, then one level inside the value of the
    object's first key. Anything else is returned unchanged.
    """
    if not isinstance(raw, Mapping):
        return raw
    if "output" in raw:
        return raw["output"]
    if raw:
        first = next(iter(raw.values()))
        if isinstance(first, Mapping) and "output" in first:
            return first["output"]
    return raw


def unify(raw: Any) -> List[ContentBlock]:
    """
    Convert a raw run result into a non-empty list of content blocks.

    Args:
        raw: Run outputs of any shape

    Returns:
        Ordered, non-empty list of TextBlock/HtmlBlock
    """
    # Already-formatted results win before any unwrapping
    if _is_content_array(raw):
        return _pass_through_content(raw)

    value = unwrap_output(raw)
    for rule in RULES:
        if rule.matches(value):
            if rule.name == "json":
                logger.debug("No structured field in run output, falling back to JSON text")
            return rule.apply(value)

    return _fallback(value)
