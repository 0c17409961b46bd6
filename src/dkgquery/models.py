"""
Pydantic models for schema observations, loop history and results.

Class, predicate and sample records are read-only observations about the
store produced by discovery queries.  :class:`DiscoveredSchema` is the
per-question snapshot the planner sees; it only ever grows.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_QUERY_SENTINEL = "(no query produced)"


class ClassInfo(BaseModel):
    """An entity type observed in the store."""

    type: str = Field(..., description="Class URI")
    count: int = Field(0, ge=0, description="Observed instance count")

    model_config = ConfigDict(frozen=True)


class PredicateInfo(BaseModel):
    """A predicate observed in the store."""

    predicate: str = Field(..., description="Predicate URI")
    count: Optional[int] = Field(None, ge=0, description="Observed usage count")

    model_config = ConfigDict(frozen=True)


class SampleTriple(BaseModel):
    """One (predicate, object) pair seen on a sampled instance of a class."""

    subject: Optional[str] = Field(None, description="Sampled subject")
    predicate: str = Field(..., description="Predicate URI")
    object: str = Field(..., description="Object value as text")

    model_config = ConfigDict(frozen=True)


class IterationAttempt(BaseModel):
    """History record of one planner/executor round."""

    iteration: int = Field(..., ge=1)
    sparql_attempted: str = Field(
        NO_QUERY_SENTINEL, description="Query text tried this round"
    )
    error: Optional[str] = Field(None, description="Error message, if any")
    result_count: Optional[int] = Field(None, ge=0, description="Rows returned")
    discoveries: Optional[List[str]] = Field(
        None, description="URIs first observed during this round"
    )
    notes: Optional[List[str]] = Field(
        None, description="Discovery errors and hints from this round"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def produced_query(self) -> bool:
        return self.sparql_attempted != NO_QUERY_SENTINEL


class DiscoveredSchema(BaseModel):
    """Accumulated schema snapshot, deduplicated by URI.

    Merging only appends URIs that are not present yet; the count of an
    existing entry is kept as first observed.
    """

    classes: List[ClassInfo] = Field(default_factory=list)
    predicates: List[PredicateInfo] = Field(default_factory=list)
    samples: List[SampleTriple] = Field(default_factory=list)
    extensions: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)

    def merge_classes(self, classes: List[ClassInfo]) -> List[str]:
        """Append unseen classes; return the URIs that were new."""
        known = {c.type for c in self.classes}
        added = []
        for info in classes:
            if info.type not in known:
                self.classes.append(info)
                known.add(info.type)
                added.append(info.type)
        return added

    def merge_predicates(self, predicates: List[PredicateInfo]) -> List[str]:
        """Append unseen predicates; return the URIs that were new."""
        known = {p.predicate for p in self.predicates}
        added = []
        for info in predicates:
            if info.predicate not in known:
                self.predicates.append(info)
                known.add(info.predicate)
                added.append(info.predicate)
        return added

    def merge_samples(self, samples: List[SampleTriple]) -> List[str]:
        """Append unseen sample triples; their predicates join the predicate list."""
        known = set(self.samples)
        for sample in samples:
            if sample not in known:
                self.samples.append(sample)
                known.add(sample)
        return self.merge_predicates([PredicateInfo(predicate=s.predicate) for s in samples])

    def merge_extensions(self, class_uri: str, rows: List[Dict[str, Any]]) -> List[str]:
        """Record extension rows for a class; ``property`` values join the predicates."""
        self.extensions.setdefault(class_uri, []).extend(rows)
        properties = [
            PredicateInfo(predicate=str(row["property"]))
            for row in rows
            if row.get("property")
        ]
        return self.merge_predicates(properties)

    @property
    def top_class(self) -> Optional[ClassInfo]:
        return self.classes[0] if self.classes else None

    def is_empty(self) -> bool:
        return not (self.classes or self.predicates)


class DiscoveryResult(BaseModel):
    """Mapped result of one discovery template."""

    kind: str = Field(..., description="classes, predicates, samples or extensions")
    success: bool = True
    classes: List[ClassInfo] = Field(default_factory=list)
    predicates: List[PredicateInfo] = Field(default_factory=list)
    samples: List[SampleTriple] = Field(default_factory=list)
    extensions: List[Dict[str, Any]] = Field(default_factory=list)
    class_uri: Optional[str] = None
    keyword: Optional[str] = None
    ontology: Optional[str] = Field(None, description="Detected ontology for extensions")
    from_cache: bool = False
    sparql: Optional[str] = Field(None, description="Query sent to the store")
    message: Optional[str] = Field(None, description="Hint for empty results")
    error: Optional[str] = None

    @property
    def row_count(self) -> int:
        return len(self.classes) + len(self.predicates) + len(self.samples) + len(
            self.extensions
        )

    def summary(self) -> Dict[str, Any]:
        """Distinct predicates and subjects seen in sample rows."""
        return {
            "unique_predicates": sorted({s.predicate for s in self.samples}),
            "unique_subjects": sorted({s.subject for s in self.samples if s.subject}),
        }


class QueryOutcome(BaseModel):
    """Result of one planner/executor loop run."""

    success: bool
    data: List[Dict[str, Any]] = Field(default_factory=list)
    sparql_used: Optional[str] = None
    error: Optional[str] = None
    iterations: int = Field(0, ge=0)
    history: List[IterationAttempt] = Field(default_factory=list)
    executed_queries: List[str] = Field(default_factory=list)
    schema_snapshot: DiscoveredSchema = Field(default_factory=DiscoveredSchema)

    @field_validator("executed_queries")
    @classmethod
    def unique_queries(cls, v: List[str]) -> List[str]:
        """Keep the first occurrence of each query text."""
        return list(dict.fromkeys(v))


class AgentAnswer(BaseModel):
    """Top-level answer to a natural-language question."""

    success: bool
    answer: Optional[str] = None
    executed_queries: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    data: List[Dict[str, Any]] = Field(default_factory=list)
    sparql_used: Optional[str] = None


class ToolCall(BaseModel):
    """A tool invocation requested by the planning oracle."""

    id: Optional[str] = None
    name: str
    arguments: Any = Field(
        default_factory=dict, description="JSON object text or an already decoded dict"
    )


class OracleMessage(BaseModel):
    """One message returned by the planning oracle."""

    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
