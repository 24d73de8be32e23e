"""Canonical content blocks returned to the invoking client."""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, List, Literal, Union


class TextBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["text"] = "text"
    text: str


class HtmlBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["html"] = "html"
    html: str


ContentBlock = Annotated[Union[TextBlock, HtmlBlock], Field(discriminator="type")]

content_blocks_adapter = TypeAdapter(List[ContentBlock])
