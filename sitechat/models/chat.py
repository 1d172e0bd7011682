"""Chat request and stream event models.

Stream events are serialized one per server-sent event frame as
``data: {json}\\n\\n``; the ``type`` field tells the widget how to render
the payload.  The terminal success marker is the literal ``[DONE]`` frame
and has no model.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """One prior turn of the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"] = "user"
    content: str = ""


class Source(BaseModel):
    """A citation shown under the assistant's answer."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str


class SourcesEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["sources"] = "sources"
    sources: list[Source] = Field(default_factory=list)


class ContentEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["content"] = "content"
    content: str


class ErrorEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    message: str


StreamEvent = Union[SourcesEvent, ContentEvent, ErrorEvent]


class ChatReply(BaseModel):
    """Non-streaming answer plus the sources it was grounded on."""

    model_config = ConfigDict(frozen=True)

    message: str
    sources: list[Source] = Field(default_factory=list)
