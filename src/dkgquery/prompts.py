"""Prompt text and tool definitions for the planning oracle."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from .models import DiscoveredSchema, IterationAttempt
from .utils import shorten_for_display

if TYPE_CHECKING:
    from .oracle import PlanningContext
    from .query_examples import QueryExample

SYSTEM_PROMPT = """You are a query expert for an OriginTrail Decentralized Knowledge Graph (DKG). \
Your task is to turn a natural language question into a SPARQL SELECT query, run it and \
learn from the result.

## WORKFLOW

1. Understand what the question asks for.
2. Discover the schema when unsure: use the discovery tools to find real classes and predicates.
3. Write a SPARQL SELECT query and run it with execute_query.
4. If it fails or returns nothing, read the error, discover more and try again.

## WRITING QUERIES

- Write plain SPARQL 1.1 SELECT queries. ASK, CONSTRUCT, DESCRIBE and updates are rejected.
- Do NOT add GRAPH clauses for the DKG index. execute_query wraps every query so it runs \
over all knowledge-asset graphs.
- Declare every prefix you use, or write full IRIs in angle brackets.
- Use COUNT(...) AS ?count for "how many" questions.
- Keep queries simple first and add filters once the basic pattern returns rows.

## DISCOVERY STRATEGY

- discover_classes lists entity types with instance counts (optionally filtered by keywords).
- discover_predicates lists predicates used by instances of a class, or predicates whose \
URI contains a keyword.
- sample_data shows real triples for instances of a class.
- discover_extensions finds ontology-specific extension properties of a class.

## RULES

1. Never guess URIs. Use the classes and predicates you have seen.
2. Learn from the failed attempts listed in the context. Do not repeat a failing query.
3. Stop discovering once you have what you need and run the query.
"""

ANSWER_PROMPT = """You answer questions from query results over a knowledge graph. \
Reply with a short, direct natural language answer based only on the rows given. \
Do not mention SPARQL unless asked."""

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "discover_classes",
            "description": "List entity types (classes) in the DKG with instance counts.",
            "parameters": {
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of classes (default 30)",
                    },
                    "keywords": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Only classes whose URI contains one of these words",
                    },
                },
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "discover_predicates",
            "description": (
                "List predicates used by instances of a class, or predicates whose URI "
                "contains a keyword. Provide classUri or keyword."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "classUri": {"type": "string", "description": "Full class URI"},
                    "keyword": {"type": "string", "description": "Word to search for"},
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of predicates (default 50)",
                    },
                },
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "sample_data",
            "description": "Show example triples for instances of a class.",
            "parameters": {
                "type": "object",
                "properties": {
                    "classUri": {"type": "string", "description": "Full class URI"},
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of triples (default 20)",
                    },
                },
                "required": ["classUri"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "discover_extensions",
            "description": (
                "Find ontology-specific extension properties used on instances of a class "
                "(schema.org additionalProperty, PROV, Dublin Core, FOAF, SKOS, OWL)."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "classUri": {"type": "string", "description": "Full class URI"},
                },
                "required": ["classUri"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "execute_query",
            "description": "Run a SPARQL SELECT query against the DKG.",
            "parameters": {
                "type": "object",
                "properties": {
                    "sparql": {"type": "string", "description": "SPARQL SELECT query text"},
                },
                "required": ["sparql"],
            },
        },
    },
]


def render_schema(schema: DiscoveredSchema, max_items: int = 40, max_samples: int = 20) -> str:
    """Bulleted summary of the classes, predicates and sample values discovered so far."""
    lines = ["## KNOWN CLASSES"]
    if schema.classes:
        for info in schema.classes[:max_items]:
            lines.append(f"- <{info.type}> ({info.count} instances)")
    else:
        lines.append("- none discovered yet")

    lines.append("")
    lines.append("## KNOWN PREDICATES")
    if schema.predicates:
        for info in schema.predicates[:max_items]:
            count = f" ({info.count} uses)" if info.count is not None else ""
            lines.append(f"- <{info.predicate}>{count}")
    else:
        lines.append("- none discovered yet")

    if schema.samples:
        lines.append("")
        lines.append("## SAMPLE DATA")
        for sample in schema.samples[:max_samples]:
            subject = f"<{sample.subject}> " if sample.subject else ""
            lines.append(f"- {subject}<{sample.predicate}> {sample.object}")

    for class_uri, rows in schema.extensions.items():
        if rows:
            lines.append("")
            lines.append(f"## EXTENSIONS OF {shorten_for_display(class_uri)}")
            for row in rows[:max_items]:
                lines.append("- " + ", ".join(f"{k}={v}" for k, v in row.items()))
    return "\n".join(lines)


def render_history(history: List[IterationAttempt]) -> str:
    """Previous attempts in order, oldest first."""
    if not history:
        return ""
    lines = ["## PREVIOUS ATTEMPTS"]
    for attempt in history:
        lines.append(f"### Attempt {attempt.iteration}")
        if attempt.produced_query:
            lines.append("```sparql")
            lines.append(attempt.sparql_attempted)
            lines.append("```")
        else:
            lines.append("No query was run.")
        if attempt.error:
            lines.append(f"Error: {attempt.error}")
        elif attempt.result_count is not None:
            lines.append(f"Returned {attempt.result_count} rows.")
        if attempt.discoveries:
            lines.append(f"Discovered: {', '.join(attempt.discoveries)}")
        for note in attempt.notes or []:
            lines.append(f"Note: {note}")
    return "\n".join(lines)


def render_examples(examples: List["QueryExample"]) -> str:
    if not examples:
        return ""
    lines = ["## EXAMPLE QUERIES"]
    for example in examples:
        lines.append(f"Question: {example.question}")
        lines.append("```sparql")
        lines.append(example.sparql.strip())
        lines.append("```")
    return "\n".join(lines)


def render_context(context: "PlanningContext") -> str:
    """User message for one planning round."""
    parts = [
        f"QUESTION: {context.question}",
        f"Iteration {context.iteration} of {context.max_iterations}.",
        render_schema(context.schema),
        render_examples(context.examples),
        render_history(context.history),
    ]
    return "\n\n".join(part for part in parts if part)


def render_results(question: str, sparql: str | None, rows: List[Dict[str, Any]]) -> str:
    """User message asking for a natural language answer to a result set."""
    preview = rows[:20]
    body = "\n".join(
        "- " + ", ".join(f"{key}: {value}" for key, value in row.items()) for row in preview
    )
    more = f"\n({len(rows) - len(preview)} more rows not shown)" if len(rows) > len(preview) else ""
    return (
        f"QUESTION: {question}\n\n"
        f"QUERY:\n{sparql or ''}\n\n"
        f"ROWS ({len(rows)}):\n{body}{more}"
    )
