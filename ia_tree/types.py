"""Core types for conversation tree nodes, edges, and compiled turns."""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NodeID = str
Role = Literal["system", "user", "assistant", "tool"]
NodeStatus = Literal["draft", "streaming", "final", "error"]
TokenSegment = Literal["content", "reasoning"]

ROLES: tuple[str, ...] = ("system", "user", "assistant", "tool")
NODE_STATUSES: tuple[str, ...] = ("draft", "streaming", "final", "error")


class WireModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TextPart(WireModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(WireModel):
    type: Literal["image"] = "image"
    image: str
    mime_type: Optional[str] = None


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]
MessageContent = Union[str, List[ContentPart]]


class TokenAlternative(WireModel):
    token: str
    probability: float


class TokenLogprob(WireModel):
    token: str
    probability: Optional[float] = None
    alternatives: List[TokenAlternative] = Field(default_factory=list)
    segment: Optional[TokenSegment] = None


class TreeNode(WireModel):
    id: NodeID
    role: Role
    content: MessageContent
    reasoning_content: Optional[str] = None
    created_at: float
    status: Optional[NodeStatus] = None
    parent_id: Optional[NodeID] = None
    token_logprobs: Optional[List[TokenLogprob]] = None


class TreeEdge(WireModel):
    id: str
    from_id: NodeID = Field(alias="from")
    to_id: NodeID = Field(alias="to")
    kind: Literal["sequence"] = "sequence"


class Turn(WireModel):
    """A node as seen by the model-calling layer and by rendering."""

    id: NodeID
    role: Role
    content: MessageContent
    reasoning_content: Optional[str] = None
    status: Optional[NodeStatus] = None
    token_logprobs: Optional[List[TokenLogprob]] = None
