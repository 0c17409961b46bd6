"""Command line interface for :mod:`dkgquery`."""

import json
import sys
from typing import Any, Dict, List, Optional

import click

from .api import (
    ask as ask_question,
    discover_classes,
    discover_extensions,
    discover_predicates,
    execute_query,
    sample_data,
    validate_query,
    wrap_query,
)
from .config import Config
from .models import DiscoveryResult
from .utils import expand_curie, shorten_for_display

__all__ = [
    "main",
]


def _read_query(query: Optional[str], file: Any) -> str:
    if file is not None:
        return file.read()
    if query:
        return query
    text = sys.stdin.read()
    if not text.strip():
        raise click.UsageError("Provide a query argument, --file, or text on stdin")
    return text


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _echo_rows(rows: List[Dict[str, Any]], variables: Optional[List[str]] = None) -> None:
    if not rows:
        click.echo("(no rows)")
        return
    columns = variables or list(dict.fromkeys(k for row in rows for k in row))
    click.echo("\t".join(columns))
    for row in rows:
        click.echo("\t".join(str(row.get(col, "")) for col in columns))


@click.group()
@click.version_option()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    r"""DKG Query - natural language questions over an OriginTrail DKG.

    Validate, wrap and execute SPARQL against a DKG store, explore its
    schema, or ask a question and let the planner find the query.


    Typical workflow: discover > execute > ask
    """
    import logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
        logging.getLogger("dkgquery").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s", force=True)


# ── SPARQL text ──────────────────────────────────────────────────────────


@main.command()
@click.argument("query", required=False)
@click.option("--file", "-f", type=click.File("r"), help="Read the query from a file")
@click.pass_context
def validate(ctx: click.Context, query: Optional[str], file: Any) -> None:
    """Check that a query parses as SPARQL.


    Example:
      dkgquery validate "SELECT ?s WHERE { ?s ?p ?o }"
    """
    result = validate_query(_read_query(query, file))
    if result.valid:
        click.echo("valid")
        return
    click.echo(f"invalid: {result.error}", err=True)
    ctx.exit(1)


@main.command()
@click.argument("query", required=False)
@click.option("--file", "-f", type=click.File("r"), help="Read the query from a file")
@click.pass_context
def wrap(ctx: click.Context, query: Optional[str], file: Any) -> None:
    """Print a SELECT query wrapped in the DKG graph envelope."""
    result = wrap_query(_read_query(query, file))
    if result.success:
        click.echo(result.sparql)
        return
    click.echo(f"Error: {result.error}", err=True)
    ctx.exit(1)


@main.command()
@click.argument("query", required=False)
@click.option("--file", "-f", type=click.File("r"), help="Read the query from a file")
@click.option("--endpoint", default=None, help="SPARQL endpoint URL")
@click.option("--no-wrap", is_flag=True, help="Send the query as is, without the envelope")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option("--limit", type=int, default=None, help="Replace the query's LIMIT")
@click.pass_context
def execute(
    ctx: click.Context,
    query: Optional[str],
    file: Any,
    endpoint: Optional[str],
    no_wrap: bool,
    output_format: str,
    limit: Optional[int],
) -> None:
    """Run one SELECT query against the store and print the rows.


    Example:
      dkgquery execute --limit 5 "SELECT ?s ?p ?o WHERE { ?s ?p ?o }"
    """
    result = execute_query(_read_query(query, file), endpoint, wrap=not no_wrap, limit=limit)
    if result.error:
        click.echo(f"Error: {result.error}", err=True)
        ctx.exit(1)

    rows = result.plain_rows()
    if output_format == "json":
        _echo_json({"query": result.query, "variables": result.variables, "rows": rows})
    else:
        _echo_rows(rows, result.variables)
        click.echo(f"\n{result.row_count} rows in {result.duration_ms} ms")


# ── Questions ────────────────────────────────────────────────────────────


@main.command()
@click.argument("question")
@click.option("--endpoint", default=None, help="SPARQL endpoint URL")
@click.option("--max-iterations", type=int, default=None, help="Planning rounds before giving up")
@click.option("--trace-dir", default=None, help="Write a debug trace file into this directory")
@click.option("--model", default=None, help="OpenAI chat model")
@click.option("--json", "as_json", is_flag=True, help="Print the full answer as JSON")
@click.pass_context
def ask(
    ctx: click.Context,
    question: str,
    endpoint: Optional[str],
    max_iterations: Optional[int],
    trace_dir: Optional[str],
    model: Optional[str],
    as_json: bool,
) -> None:
    """Answer a natural language question.


    Example:
      dkgquery ask "How many products exist?"
    """
    overrides: Dict[str, Any] = {}
    if trace_dir:
        overrides["TRACE_DIR"] = trace_dir
    if model:
        overrides["MODEL"] = model
    config = type("CliConfig", (Config,), overrides) if overrides else Config

    answer = ask_question(
        question, endpoint=endpoint, max_iterations=max_iterations, config=config
    )

    if as_json:
        _echo_json(answer.model_dump())
    elif answer.success:
        click.echo(answer.answer)
        click.echo("\nSPARQL used:")
        click.echo(answer.sparql_used or "")
    else:
        click.echo(f"No answer: {answer.error}", err=True)

    if not as_json and answer.executed_queries:
        click.echo(f"\n{len(answer.executed_queries)} queries sent to the store")
        for number, sent in enumerate(answer.executed_queries, start=1):
            click.echo(f"\n-- Query {number} --")
            click.echo(sent)
    if not answer.success:
        ctx.exit(1)


# ── Discovery ────────────────────────────────────────────────────────────


def _report(ctx: click.Context, result: DiscoveryResult, as_json: bool) -> None:
    if as_json:
        _echo_json(result.model_dump())
    elif result.success:
        for info in result.classes:
            click.echo(f"{info.count:>8}  {shorten_for_display(info.type)}  <{info.type}>")
        for pred in result.predicates:
            count = "" if pred.count is None else pred.count
            click.echo(f"{count:>8}  <{pred.predicate}>")
        for sample in result.samples:
            click.echo(f"<{sample.subject}>  <{sample.predicate}>  {sample.object}")
        if result.ontology:
            click.echo(f"Detected ontology: {result.ontology}")
        for row in result.extensions:
            click.echo("  ".join(f"{k}={v}" for k, v in row.items()))
        if result.message:
            click.echo(result.message)
    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        ctx.exit(1)


@main.group()
def discover() -> None:
    """Explore the classes and predicates in the store."""


@discover.command("classes")
@click.option("--endpoint", default=None, help="SPARQL endpoint URL")
@click.option("--limit", type=int, default=None, help="Maximum number of classes")
@click.option("--keyword", "keywords", multiple=True, help="Only classes containing this word")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def discover_classes_command(
    ctx: click.Context,
    endpoint: Optional[str],
    limit: Optional[int],
    keywords: tuple,
    as_json: bool,
) -> None:
    """List classes by instance count."""
    _report(ctx, discover_classes(endpoint, limit, list(keywords) or None), as_json)


@discover.command("predicates")
@click.option("--endpoint", default=None, help="SPARQL endpoint URL")
@click.option("--class-uri", default=None, help="Class URI or CURIE such as schema:Product")
@click.option("--keyword", default=None, help="Word the predicate URI must contain")
@click.option("--limit", type=int, default=None, help="Maximum number of predicates")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def discover_predicates_command(
    ctx: click.Context,
    endpoint: Optional[str],
    class_uri: Optional[str],
    keyword: Optional[str],
    limit: Optional[int],
    as_json: bool,
) -> None:
    """List predicates of a class, or predicates matching a keyword."""
    if class_uri:
        class_uri = expand_curie(class_uri)
    _report(ctx, discover_predicates(endpoint, class_uri, keyword, limit), as_json)


@discover.command("samples")
@click.option("--endpoint", default=None, help="SPARQL endpoint URL")
@click.option("--class-uri", required=True, help="Class URI or CURIE such as schema:Product")
@click.option("--limit", type=int, default=None, help="Maximum number of triples")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def discover_samples_command(
    ctx: click.Context,
    endpoint: Optional[str],
    class_uri: str,
    limit: Optional[int],
    as_json: bool,
) -> None:
    """Show example triples for instances of a class."""
    _report(ctx, sample_data(expand_curie(class_uri), endpoint, limit), as_json)


@discover.command("extensions")
@click.option("--endpoint", default=None, help="SPARQL endpoint URL")
@click.option("--class-uri", required=True, help="Class URI or CURIE such as schema:Product")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def discover_extensions_command(
    ctx: click.Context, endpoint: Optional[str], class_uri: str, as_json: bool
) -> None:
    """Find ontology-specific extension properties of a class."""
    _report(ctx, discover_extensions(expand_curie(class_uri), endpoint), as_json)


if __name__ == "__main__":
    main()
