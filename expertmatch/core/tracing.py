"""
Execution tracing for retrieval requests.

A trace is created per request and passed explicitly to every component that
wants to record a step. Nothing is stored in thread-locals or module state, so
concurrent requests (and the concurrent fan-out inside one request) never see
each other's steps. Every component accepts ``trace=None`` and records nothing
in that case.

Usage:
    trace = ExecutionTrace()
    async with trace_step(trace, "Vector Search", "VectorSearchService", "search") as step:
        matches = await vector_search.search(...)
        step.output_summary = f"{len(matches)} matches"
    trace.to_dict()
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

_MAX_SUMMARY_LENGTH = 200


class StepStatus(str, Enum):
    """Outcome of a single traced step."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    DEGRADED = "DEGRADED"


@dataclass
class TraceStep:
    """One recorded unit of work inside a request.

    Attributes:
        name: Human readable step name (e.g. "Gap Analysis")
        component: Owning service class name
        operation: Method that ran
        status: Step outcome
        duration_ms: Wall-clock duration in milliseconds
        input_summary: Short description of the input
        output_summary: Short description of the output
        model: Language model used by the step, if any
    """

    name: str
    component: str
    operation: str
    status: StepStatus = StepStatus.SUCCESS
    duration_ms: float = 0.0
    input_summary: str | None = None
    output_summary: str | None = None
    model: str | None = None


@dataclass
class ExecutionTrace:
    """Ordered list of steps recorded for one request."""

    steps: list[TraceStep] = field(default_factory=list)

    def record(
        self,
        name: str,
        component: str,
        operation: str,
        status: StepStatus = StepStatus.SUCCESS,
        duration_ms: float = 0.0,
        input_summary: str | None = None,
        output_summary: str | None = None,
        model: str | None = None,
    ) -> TraceStep:
        """Append a completed step and return it."""
        step = TraceStep(
            name=name,
            component=component,
            operation=operation,
            status=status,
            duration_ms=duration_ms,
            input_summary=summarize(input_summary),
            output_summary=summarize(output_summary),
            model=model,
        )
        self.steps.append(step)
        return step

    def steps_named(self, name: str) -> list[TraceStep]:
        return [step for step in self.steps if step.name == name]

    @property
    def total_duration_ms(self) -> float:
        return sum(step.duration_ms for step in self.steps)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "steps": [
                {**asdict(step), "status": step.status.value} for step in self.steps
            ],
            "total_duration_ms": self.total_duration_ms,
        }


def summarize(value: Any) -> str | None:
    """Render a value as a bounded single-line summary."""
    if value is None:
        return None
    text = " ".join(str(value).split())
    if len(text) > _MAX_SUMMARY_LENGTH:
        return text[: _MAX_SUMMARY_LENGTH - 3] + "..."
    return text


@asynccontextmanager
async def trace_step(
    trace: ExecutionTrace | None,
    name: str,
    component: str,
    operation: str,
    input_summary: str | None = None,
    model: str | None = None,
) -> AsyncIterator[TraceStep]:
    """Time a block and record it on ``trace``.

    The yielded step may be mutated inside the block (``output_summary``,
    ``status``). An exception escaping the block marks the step FAILED and is
    re-raised. With ``trace=None`` a detached step is yielded and discarded.
    """
    step = TraceStep(
        name=name,
        component=component,
        operation=operation,
        input_summary=summarize(input_summary),
        model=model,
    )
    started = time.perf_counter()
    try:
        yield step
    except BaseException:
        step.status = StepStatus.FAILED
        raise
    finally:
        step.duration_ms = (time.perf_counter() - started) * 1000
        step.output_summary = summarize(step.output_summary)
        if trace is not None:
            trace.steps.append(step)
