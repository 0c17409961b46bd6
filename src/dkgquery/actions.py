"""
Typed actions decoded from planning-oracle messages.

The oracle speaks in tool calls (a name plus JSON arguments) and plain
text.  :func:`decode_messages` turns that into a closed set of action
models so the query loop dispatches on types instead of re-parsing JSON.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .models import OracleMessage, ToolCall

logger = logging.getLogger(__name__)

__all__ = [
    "Action",
    "ActionDecodeError",
    "DiscoverClasses",
    "DiscoverExtensions",
    "DiscoverPredicates",
    "ExecuteQuery",
    "PlainAnswer",
    "SampleData",
    "TOOL_NAMES",
    "decode_messages",
    "decode_tool_call",
]


class ActionDecodeError(ValueError):
    """Raised when a tool call is unknown or its arguments are malformed."""

    def __init__(self, tool: str, detail: str):
        self.tool = tool
        self.detail = detail
        super().__init__(f"Invalid call to {tool}: {detail}")


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class DiscoverClasses(_Action):
    tool: Literal["discover_classes"] = "discover_classes"
    limit: Optional[int] = Field(None, ge=1)
    keywords: Optional[List[str]] = None

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [k for k in v.replace(",", " ").split() if k]
        return v


class DiscoverPredicates(_Action):
    tool: Literal["discover_predicates"] = "discover_predicates"
    class_uri: Optional[str] = Field(
        None, validation_alias=AliasChoices("class_uri", "classUri")
    )
    keyword: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def needs_target(self) -> "DiscoverPredicates":
        if not self.class_uri and not self.keyword:
            raise ValueError("either classUri or keyword is required")
        return self


class DiscoverExtensions(_Action):
    tool: Literal["discover_extensions"] = "discover_extensions"
    class_uri: str = Field(..., validation_alias=AliasChoices("class_uri", "classUri"))


class SampleData(_Action):
    tool: Literal["sample_data"] = "sample_data"
    class_uri: str = Field(..., validation_alias=AliasChoices("class_uri", "classUri"))
    limit: Optional[int] = Field(None, ge=1)


class ExecuteQuery(_Action):
    tool: Literal["execute_query"] = "execute_query"
    sparql: str = Field(..., min_length=1, validation_alias=AliasChoices("sparql", "query"))


class PlainAnswer(_Action):
    """Text the oracle produced without calling a tool."""

    tool: Literal["plain_answer"] = "plain_answer"
    text: str


Action = Annotated[
    Union[
        DiscoverClasses,
        DiscoverPredicates,
        DiscoverExtensions,
        SampleData,
        ExecuteQuery,
        PlainAnswer,
    ],
    Field(discriminator="tool"),
]

_ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Action)

TOOL_NAMES = (
    "discover_classes",
    "discover_predicates",
    "discover_extensions",
    "sample_data",
    "execute_query",
)


def _arguments(call: ToolCall) -> dict:
    args = call.arguments
    if args is None or args == "":
        return {}
    if isinstance(args, str):
        try:
            args = json.loads(args)
        except json.JSONDecodeError as e:
            raise ActionDecodeError(call.name, f"arguments are not JSON ({e.msg})") from e
    if not isinstance(args, dict):
        raise ActionDecodeError(call.name, "arguments must be a JSON object")
    return args


def decode_tool_call(call: ToolCall) -> Any:
    """
    Decode one tool call into its action model.

    Parameters
    ----------
    call : ToolCall
        Tool call as returned by the oracle

    Returns
    -------
    Action
        One of the action models

    Raises
    ------
    ActionDecodeError
        If the tool name is unknown or the arguments do not validate
    """
    if call.name not in TOOL_NAMES:
        raise ActionDecodeError(call.name, "unknown tool")
    payload = {**_arguments(call), "tool": call.name}
    try:
        return _ACTION_ADAPTER.validate_python(payload)
    except ValidationError as e:
        problems = "; ".join(err["msg"] for err in e.errors())
        raise ActionDecodeError(call.name, problems) from e


def decode_messages(
    messages: List[OracleMessage],
) -> Tuple[List[Any], List[str]]:
    """
    Decode every message of one planning round, in order.

    Tool calls become their action models; message text without tool calls
    becomes a :class:`PlainAnswer`.  Calls that fail to decode are skipped
    and reported as error strings instead of aborting the round.

    Returns
    -------
    tuple
        ``(actions, errors)``
    """
    actions: List[Any] = []
    errors: List[str] = []
    for message in messages:
        if message.tool_calls:
            for call in message.tool_calls:
                try:
                    actions.append(decode_tool_call(call))
                except ActionDecodeError as e:
                    logger.warning(str(e))
                    errors.append(str(e))
        elif message.content and message.content.strip():
            actions.append(PlainAnswer(text=message.content.strip()))
    return actions, errors
