"""
Top-level question answering entry point.

:class:`DkgQueryAgent` runs the query loop with the tool-calling agent's
iteration ceiling and turns a successful result set into a natural
language answer through the planning oracle.
"""

from __future__ import annotations

import logging
from typing import Optional

from .cache import DiscoveryCache
from .config import Config
from .loop import QueryLoop
from .models import AgentAnswer
from .oracle import PlanningOracle
from .sparql_helper import GraphStore

logger = logging.getLogger(__name__)

DEFAULT_AGENT_ITERATIONS = 10


class DkgQueryAgent:
    """Answers natural-language questions against a DKG store."""

    def __init__(
        self,
        store: GraphStore,
        oracle: PlanningOracle,
        cache: Optional[DiscoveryCache] = None,
        *,
        max_iterations: int = DEFAULT_AGENT_ITERATIONS,
        loop: Optional[QueryLoop] = None,
    ):
        self.oracle = oracle
        self.loop = loop or QueryLoop(store, oracle, cache, max_iterations=max_iterations)

    @classmethod
    def from_config(
        cls,
        config: type = Config,
        *,
        store: Optional[GraphStore] = None,
        oracle: Optional[PlanningOracle] = None,
        cache: Optional[DiscoveryCache] = None,
        max_iterations: Optional[int] = None,
    ) -> "DkgQueryAgent":
        loop = QueryLoop.from_config(
            config,
            store=store,
            oracle=oracle,
            cache=cache,
            max_iterations=max_iterations or config.AGENT_MAX_ITERATIONS,
        )
        return cls(loop.store, loop.oracle, loop.cache, loop=loop)

    def run_query(self, question: str) -> AgentAnswer:
        """
        Answer a question.

        Args:
            question: Natural-language question

        Returns:
            :class:`~dkgquery.models.AgentAnswer` with the answer text and the
            ordered list of distinct queries sent to the store
        """
        outcome = self.loop.run(question)
        if not outcome.success:
            logger.info(f"No answer after {outcome.iterations} iterations: {outcome.error}")
            return AgentAnswer(
                success=False,
                error=outcome.error,
                executed_queries=outcome.executed_queries,
                data=outcome.data,
                sparql_used=outcome.sparql_used,
            )

        try:
            answer = self.oracle.synthesize_answer(question, outcome)
        except Exception as e:
            logger.warning(f"Answer synthesis failed, using a plain summary: {e}")
            answer = PlanningOracle.synthesize_answer(self.oracle, question, outcome)

        return AgentAnswer(
            success=True,
            answer=answer,
            executed_queries=outcome.executed_queries,
            data=outcome.data,
            sparql_used=outcome.sparql_used,
        )


def run_query(question: str, agent: Optional[DkgQueryAgent] = None) -> AgentAnswer:
    """Answer a question with a configured agent (built from the environment if omitted)."""
    agent = agent or DkgQueryAgent.from_config()
    return agent.run_query(question)
