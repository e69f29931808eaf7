"""
Builder Types

Request, context and response models for the graph and path builds, plus
the error types raised at the build boundary.
"""

from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional
from dataclasses import dataclass
from pydantic import BaseModel, Field

from ..graph_types import Graph, Paths

if TYPE_CHECKING:
    from .summary_source import SummarySource


# Summary shapes handed over by the query layer
EdgeSummary = dict[str, dict[str, int]]     # fromToken -> {toToken -> docCount}
PathSummary = dict[str, int]                # encodedPath -> docCount
BucketOrder = Callable[[Iterable[tuple[str, int]]], list[tuple[str, int]]]


BACKEND_FAILURE = "backend_failure"
INVARIANT_VIOLATION = "invariant_violation"


# ============================================================================
# Request Types
# ============================================================================

class GraphRequest(BaseModel):
    """Session filter for a graph build.

    filters are backend query clauses; the builder passes them through to
    the summary source untouched.
    """
    filters: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Backend filter clauses selecting the sessions to summarise"
    )


class PathsRequest(BaseModel):
    """Session filter for a path-enumeration build."""
    filters: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Backend filter clauses selecting the sessions to summarise"
    )


@dataclass
class AnalyticsContext:
    """
    Per-call dependencies of a build.

    source produces the aggregation summaries (see summary_source.py).
    bucket_order, when set, is applied to path buckets before ids are
    assigned; pin it when ids must be stable across runs.
    """
    source: "SummarySource"
    bucket_order: Optional[BucketOrder] = None


def order_by_count_then_key(buckets: Iterable[tuple[str, int]]) -> list[tuple[str, int]]:
    """Most frequent paths first, ties by encoded path."""
    return sorted(buckets, key=lambda kv: (-kv[1], kv[0]))


# ============================================================================
# Errors
# ============================================================================

class BackendError(Exception):
    """The query layer could not produce a summary."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class AnalyticsError(Exception):
    """
    Uniform failure of a build operation.

    kind is BACKEND_FAILURE (worth retrying) or INVARIANT_VIOLATION
    (internal bug or corrupt upstream data). The original exception is
    kept as cause and as __cause__.
    """

    def __init__(self, kind: str, operation: str, cause: BaseException):
        self.kind = kind
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed ({kind}): {cause}")

    @property
    def retryable(self) -> bool:
        return self.kind == BACKEND_FAILURE


# ============================================================================
# Response Types
# ============================================================================

class BuildError(BaseModel):
    """Tagged error payload of a failed build."""
    error_type: str = Field(description="backend_failure or invariant_violation")
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional error context"
    )

    @classmethod
    def from_exception(cls, e: AnalyticsError) -> "BuildError":
        return cls(
            error_type=e.kind,
            message=str(e.cause),
            details={
                'operation': e.operation,
                'cause_type': type(e.cause).__name__,
            },
        )


class GraphResponse(BaseModel):
    """Result of a graph build: either result or error is set."""
    success: bool = Field(default=True)
    result: Optional[Graph] = None
    error: Optional[BuildError] = None


class PathsResponse(BaseModel):
    """Result of a path-enumeration build: either result or error is set."""
    success: bool = Field(default=True)
    result: Optional[Paths] = None
    error: Optional[BuildError] = None
