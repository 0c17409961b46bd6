"""
Planning oracle contract and the OpenAI-backed implementation.

The query loop asks an oracle, once per iteration, what to do next.  The
oracle sees the question, the schema discovered so far and every previous
attempt, and answers with messages that may carry tool calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

import openai

from .models import DiscoveredSchema, IterationAttempt, OracleMessage, QueryOutcome, ToolCall
from .prompts import (
    ANSWER_PROMPT,
    SYSTEM_PROMPT,
    TOOL_DEFINITIONS,
    render_context,
    render_results,
)

if TYPE_CHECKING:
    from .query_examples import QueryExample

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.3


class OracleError(Exception):
    """Raised when the oracle backend cannot be reached or answers garbage."""

    pass


@dataclass
class PlanningContext:
    """Everything the oracle sees for one planning round."""

    question: str
    schema: DiscoveredSchema
    history: List[IterationAttempt] = field(default_factory=list)
    iteration: int = 1
    max_iterations: int = 3
    examples: List["QueryExample"] = field(default_factory=list)


class PlanningOracle(ABC):
    """Decides between more discovery and committing to a query."""

    @abstractmethod
    def plan(self, context: PlanningContext) -> List[OracleMessage]:
        """Return this round's messages; an empty list means no response."""

    def synthesize_answer(self, question: str, outcome: QueryOutcome) -> str:
        """Natural language answer for a successful outcome."""
        rows = outcome.data
        if not rows:
            return "No results found."
        if len(rows) == 1 and len(rows[0]) == 1:
            key, value = next(iter(rows[0].items()))
            return f"{key}: {value}"
        return f"Found {len(rows)} results."


class OpenAIPlanningOracle(PlanningOracle):
    """Oracle backed by the OpenAI chat completions API with tool calling.

    Args:
        client: Preconfigured ``openai.OpenAI`` client; created on first use
            from ``api_key`` when omitted
        api_key: API key for a lazily created client
        model: Chat model name
        temperature: Sampling temperature
    """

    def __init__(
        self,
        client: Any = None,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        self._client = client
        self.api_key = api_key
        self.model = model
        self.temperature = temperature

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def _complete(self, messages: List[dict], **kwargs: Any) -> Any:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=messages,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise OracleError(f"OpenAI request failed: {e}") from e
        if not response.choices:
            raise OracleError("OpenAI returned no choices")
        return response.choices[0].message

    def plan(self, context: PlanningContext) -> List[OracleMessage]:
        message = self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": render_context(context)},
            ],
            tools=TOOL_DEFINITIONS,
            tool_choice="auto",
        )
        tool_calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments)
            for call in message.tool_calls or []
        ]
        if not tool_calls and not (message.content or "").strip():
            logger.debug("Oracle returned an empty message")
            return []
        return [OracleMessage(content=message.content, tool_calls=tool_calls)]

    def synthesize_answer(self, question: str, outcome: QueryOutcome) -> str:
        message = self._complete(
            [
                {"role": "system", "content": ANSWER_PROMPT},
                {
                    "role": "user",
                    "content": render_results(question, outcome.sparql_used, outcome.data),
                },
            ]
        )
        text = (message.content or "").strip()
        return text or super().synthesize_answer(question, outcome)
