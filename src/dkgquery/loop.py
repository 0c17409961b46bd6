"""
Iterative planner/executor loop.

The loop turns a natural-language question into store results:

1. ``SEED``: best-effort discovery of the most common classes and the
   predicates of the top class.
2. ``PLAN``: the planning oracle sees the question, the schema discovered
   so far and every previous attempt, and returns tool calls.
3. ``EXECUTE``: discovery calls grow the schema snapshot; an execute call
   is validated, wrapped in the DKG graph envelope and sent to the store.
4. ``EVALUATE``: the first query returning rows ends the run; anything
   else is recorded as a failed attempt and the loop plans again until the
   iteration ceiling is reached.

Nothing below :meth:`QueryLoop.run` raises for runtime conditions; store,
oracle and decoding failures end up in the returned history.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .actions import (
    DiscoverClasses,
    DiscoverExtensions,
    DiscoverPredicates,
    ExecuteQuery,
    PlainAnswer,
    SampleData,
    decode_messages,
)
from .cache import DiscoveryCache, get_default_cache
from .config import Config
from .discovery import DiscoveryLibrary
from .models import (
    NO_QUERY_SENTINEL,
    DiscoveredSchema,
    DiscoveryResult,
    IterationAttempt,
    QueryOutcome,
)
from .oracle import OpenAIPlanningOracle, PlanningContext, PlanningOracle
from .query_examples import QueryExample, load_query_examples, select_examples
from .sparql import validate_sparql, wrap_query_text
from .sparql_helper import GraphStore, SparqlHelper
from .tracing import TraceWriter

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response from agent"


class LoopState(str, Enum):
    SEED = "seed"
    PLAN = "plan"
    EXECUTE = "execute"
    EVALUATE = "evaluate"
    DONE = "done"


class _RecordingStore:
    """Store wrapper remembering every distinct query text sent, in order."""

    def __init__(self, store: GraphStore):
        self.store = store
        self.executed: List[str] = []

    def query(self, sparql: str, query_type: str = "SELECT") -> Dict[str, Any]:
        if sparql not in self.executed:
            self.executed.append(sparql)
        return self.store.query(sparql, query_type)


class QueryLoop:
    """Plans, executes and evaluates candidate queries for one question at a time.

    Args:
        store: Graph store implementing ``query(sparql, query_type)``
        oracle: Planning oracle
        cache: Discovery cache shared across runs; a private one when omitted
        max_iterations: Plan/execute/evaluate rounds before giving up
        seed_class_limit: Classes fetched during seeding
        result_preview_rows: Rows of each execution kept in the run transcript
        class_limit: Default LIMIT of class discovery
        predicate_limit: Default LIMIT of predicate discovery
        sample_limit: Default LIMIT of sample discovery
        tracer: Writes a debug trace per run when given
        examples: Curated query examples offered to the oracle
        example_count: Examples selected per question
    """

    def __init__(
        self,
        store: GraphStore,
        oracle: PlanningOracle,
        cache: Optional[DiscoveryCache] = None,
        *,
        max_iterations: int = 3,
        seed_class_limit: int = 15,
        result_preview_rows: int = 20,
        class_limit: int = 30,
        predicate_limit: int = 50,
        sample_limit: int = 20,
        tracer: Optional[TraceWriter] = None,
        examples: Optional[List[QueryExample]] = None,
        example_count: int = 3,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.store = store
        self.oracle = oracle
        self.cache = cache if cache is not None else DiscoveryCache()
        self.max_iterations = max_iterations
        self.seed_class_limit = seed_class_limit
        self.result_preview_rows = result_preview_rows
        self.class_limit = class_limit
        self.predicate_limit = predicate_limit
        self.sample_limit = sample_limit
        self.tracer = tracer
        self.examples = examples or []
        self.example_count = example_count
        self.state = LoopState.DONE

    @classmethod
    def from_config(
        cls,
        config: type = Config,
        *,
        store: Optional[GraphStore] = None,
        oracle: Optional[PlanningOracle] = None,
        cache: Optional[DiscoveryCache] = None,
        max_iterations: Optional[int] = None,
    ) -> "QueryLoop":
        """Build a loop from a :class:`~dkgquery.config.Config` class."""
        if store is None:
            store = SparqlHelper(
                config.SPARQL_ENDPOINT,
                max_retries=config.SPARQL_MAX_RETRIES,
                timeout=config.SPARQL_TIMEOUT,
            )
        if oracle is None:
            oracle = OpenAIPlanningOracle(
                api_key=config.OPENAI_API_KEY or None,
                model=config.MODEL,
                temperature=config.TEMPERATURE,
            )
        return cls(
            store,
            oracle,
            cache if cache is not None else get_default_cache(),
            max_iterations=max_iterations or config.QUERY_MAX_ITERATIONS,
            seed_class_limit=config.SEED_CLASS_LIMIT,
            result_preview_rows=config.RESULT_PREVIEW_ROWS,
            class_limit=config.CLASS_LIMIT,
            predicate_limit=config.PREDICATE_LIMIT,
            sample_limit=config.SAMPLE_LIMIT,
            tracer=TraceWriter(config.TRACE_DIR) if config.TRACE_DIR else None,
            examples=load_query_examples(config.QUERY_EXAMPLES or None),
        )

    # ── Run ──────────────────────────────────────────────────────────────

    def run(self, question: str) -> QueryOutcome:
        """
        Answer one question with store rows.

        Args:
            question: Natural-language question

        Returns:
            :class:`~dkgquery.models.QueryOutcome`; ``success`` is true only
            when a query returned at least one row

        Raises:
            TypeError: If ``question`` is not a string
        """
        if not isinstance(question, str):
            raise TypeError(f"question must be a string, not {type(question).__name__}")

        store = _RecordingStore(self.store)
        library = DiscoveryLibrary(
            store,
            self.cache,
            class_limit=self.class_limit,
            predicate_limit=self.predicate_limit,
            sample_limit=self.sample_limit,
        )
        schema = DiscoveredSchema()
        history: List[IterationAttempt] = []
        transcript: List[Dict[str, Any]] = []

        self.state = LoopState.SEED
        self._seed(library, schema, transcript)
        examples = select_examples(question, self.examples, self.example_count)

        last_error: Optional[str] = None
        for iteration in range(1, self.max_iterations + 1):
            attempt, rows, sent = self._iterate(
                question, iteration, library, store, schema, history, examples, transcript
            )
            history.append(attempt)

            self.state = LoopState.EVALUATE
            if rows:
                logger.info(f"Query returned {len(rows)} rows on iteration {iteration}")
                self.state = LoopState.DONE
                outcome = QueryOutcome(
                    success=True,
                    data=rows,
                    sparql_used=sent,
                    iterations=iteration,
                    history=history,
                    executed_queries=store.executed,
                    schema_snapshot=schema,
                )
                return self._finish(question, transcript, outcome)

            if attempt.error:
                last_error = attempt.error
            logger.info(
                f"Iteration {iteration}/{self.max_iterations} failed: "
                f"{attempt.error or f'{attempt.result_count or 0} results'}"
            )

        self.state = LoopState.DONE
        outcome = QueryOutcome(
            success=False,
            error=(
                f"{last_error} (after {self.max_iterations} attempts)"
                if last_error
                else f"0 results after {self.max_iterations} attempts"
            ),
            iterations=self.max_iterations,
            history=history,
            executed_queries=store.executed,
            schema_snapshot=schema,
        )
        return self._finish(question, transcript, outcome)

    def _finish(
        self, question: str, transcript: List[Dict[str, Any]], outcome: QueryOutcome
    ) -> QueryOutcome:
        if self.tracer is not None:
            self.tracer.write(
                question,
                transcript,
                outcome.executed_queries,
                outcome.model_dump(exclude={"schema_snapshot"}),
            )
        return outcome

    # ── Seed ─────────────────────────────────────────────────────────────

    def _seed(
        self,
        library: DiscoveryLibrary,
        schema: DiscoveredSchema,
        transcript: List[Dict[str, Any]],
    ) -> None:
        """Fetch common classes and the top class's predicates; never fatal."""
        try:
            classes = library.list_classes(limit=self.seed_class_limit)
            schema.merge_classes(classes.classes)
            transcript.append(_discovery_entry("seed", classes))
            top = schema.top_class
            if top is not None:
                predicates = library.predicates_for_class(top.type)
                schema.merge_predicates(predicates.predicates)
                transcript.append(_discovery_entry("seed", predicates))
        except Exception as e:
            logger.warning(f"Schema seeding failed, continuing without schema: {e}")
        logger.info(
            f"Seeded schema with {len(schema.classes)} classes "
            f"and {len(schema.predicates)} predicates"
        )

    # ── One iteration ────────────────────────────────────────────────────

    def _iterate(
        self,
        question: str,
        iteration: int,
        library: DiscoveryLibrary,
        store: _RecordingStore,
        schema: DiscoveredSchema,
        history: List[IterationAttempt],
        examples: List[QueryExample],
        transcript: List[Dict[str, Any]],
    ) -> Tuple[IterationAttempt, Optional[List[Dict[str, Any]]], Optional[str]]:
        self.state = LoopState.PLAN
        context = PlanningContext(
            question=question,
            schema=schema.model_copy(deep=True),
            history=list(history),
            iteration=iteration,
            max_iterations=self.max_iterations,
            examples=examples,
        )
        try:
            messages = self.oracle.plan(context)
        except Exception as e:
            logger.warning(f"Planning oracle failed on iteration {iteration}: {e}")
            transcript.append({"iteration": iteration, "oracle_error": str(e)})
            return IterationAttempt(iteration=iteration, error=f"{NO_RESPONSE}: {e}"), None, None

        transcript.append(
            {"iteration": iteration, "messages": [m.model_dump() for m in messages or []]}
        )
        actions, decode_errors = decode_messages(messages or [])
        if not actions and not decode_errors:
            logger.warning(f"Planning oracle gave no usable message on iteration {iteration}")
            return IterationAttempt(iteration=iteration, error=NO_RESPONSE), None, None

        self.state = LoopState.EXECUTE
        discoveries: List[str] = []
        notes: List[str] = []
        attempted = NO_QUERY_SENTINEL
        error: Optional[str] = None
        rows: Optional[List[Dict[str, Any]]] = None
        sent: Optional[str] = None

        for action in actions:
            if isinstance(action, ExecuteQuery):
                attempted = action.sparql
                rows, sent, error = self._execute(store, action.sparql)
                transcript.append(
                    {
                        "iteration": iteration,
                        "execute": sent or action.sparql,
                        "error": error,
                        "row_count": None if rows is None else len(rows),
                        "rows": (rows or [])[: self.result_preview_rows],
                    }
                )
                if rows:
                    break
            elif isinstance(action, PlainAnswer):
                logger.debug(f"Oracle said: {action.text[:200]}")
            else:
                result = self._discover(library, action)
                discoveries.extend(_merge(schema, result))
                transcript.append(_discovery_entry(iteration, result))
                if result.error:
                    notes.append(f"{result.kind} failed: {result.error}")
                if result.message:
                    notes.append(result.message)

        if error is None and attempted == NO_QUERY_SENTINEL and decode_errors:
            error = "; ".join(decode_errors)

        attempt = IterationAttempt(
            iteration=iteration,
            sparql_attempted=attempted,
            error=error,
            result_count=None if rows is None else len(rows),
            discoveries=discoveries or None,
            notes=notes or None,
        )
        return attempt, rows, sent

    def _discover(self, library: DiscoveryLibrary, action: Any) -> DiscoveryResult:
        if isinstance(action, DiscoverClasses):
            return library.list_classes(action.limit, action.keywords)
        if isinstance(action, DiscoverPredicates):
            return library.discover_predicates(action.class_uri, action.keyword, action.limit)
        if isinstance(action, SampleData):
            return library.sample_triples(action.class_uri, action.limit)
        if isinstance(action, DiscoverExtensions):
            return library.discover_extensions(action.class_uri)
        raise TypeError(f"Unknown action: {action!r}")

    def _execute(
        self, store: _RecordingStore, sparql: str
    ) -> Tuple[Optional[List[Dict[str, Any]]], Optional[str], Optional[str]]:
        """Validate, wrap and run a candidate query; returns ``(rows, sent, error)``."""
        validation = validate_sparql(sparql)
        if not validation.valid:
            return None, None, f"Invalid SPARQL: {validation.error}"

        wrapped = wrap_query_text(sparql)
        if not wrapped.success:
            return None, None, wrapped.error

        logger.debug(f"Executing query:\n{wrapped.sparql}")
        try:
            result = store.query(wrapped.sparql, "SELECT")
        except Exception as e:
            logger.warning(f"Store rejected query: {e}")
            return None, wrapped.sparql, str(e) or type(e).__name__
        return list(result.get("data") or []), wrapped.sparql, None


def _merge(schema: DiscoveredSchema, result: DiscoveryResult) -> List[str]:
    """Fold a discovery result into the snapshot; return newly seen URIs."""
    added = schema.merge_classes(result.classes)
    added += schema.merge_predicates(result.predicates)
    added += schema.merge_samples(result.samples)
    if result.extensions and result.class_uri:
        added += schema.merge_extensions(result.class_uri, result.extensions)
    return added


def _discovery_entry(step: Any, result: DiscoveryResult) -> Dict[str, Any]:
    return {
        "iteration": step,
        "discovery": result.kind,
        "success": result.success,
        "rows": result.row_count,
        "from_cache": result.from_cache,
        "error": result.error,
        "message": result.message,
    }
