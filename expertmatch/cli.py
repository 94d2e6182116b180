"""
Command-line entry point for expert-match.

Usage:
    expertmatch search "Senior Java developers with Kafka for Acme Bank"
    expertmatch search "Team for an RFP on payments" --deep-research --trace
    expertmatch search "Golang experts" --sources vector,keyword --max-results 5
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import Any

from pydantic import ValidationError

from expertmatch.core.config import get_settings
from expertmatch.core.logging import (
    clear_correlation_id,
    log_execution_trace,
    set_correlation_id,
    setup_structured_logging,
)
from expertmatch.core.tracing import ExecutionTrace
from expertmatch.domain.exceptions import ExpertMatchError
from expertmatch.domain.models import RetrievalResult
from expertmatch.domain.requests import QueryOptions, QueryRequest
from expertmatch.graph.exceptions import Neo4jError
from expertmatch.retrieval.hybrid import resolve_sources
from expertmatch.search.exceptions import QdrantError
from expertmatch.services import create_services

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_INPUT = 2
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expertmatch",
        description="Hybrid expert retrieval with optional deep research",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Find experts for a free-text query")
    search.add_argument("query", help="Free-text query")
    search.add_argument("--max-results", type=int, default=10, help="Maximum experts to return")
    search.add_argument(
        "--min-similarity",
        type=float,
        default=None,
        help="Vector similarity floor (default: from settings)",
    )
    search.add_argument("--no-rerank", action="store_true", help="Skip model reranking")
    search.add_argument(
        "--deep-research",
        action="store_true",
        help="Run gap analysis and query expansion",
    )
    search.add_argument(
        "--sources",
        default=None,
        help="Comma-separated subset of vector,graph,keyword",
    )
    search.add_argument("--trace", action="store_true", help="Include the execution trace")
    search.add_argument("--log-level", default=None, help="Override EXPERT_MATCH_LOG_LEVEL")
    return parser


def build_request(args: argparse.Namespace, default_min_similarity: float) -> QueryRequest:
    """Translate parsed arguments into a validated QueryRequest.

    Raises:
        InvalidInputError: On an unknown source name
        ValidationError: On out-of-range options or a blank query
    """
    sources = None
    if args.sources:
        names = [name.strip() for name in args.sources.split(",") if name.strip()]
        sources = resolve_sources(names)
    min_similarity = (
        args.min_similarity if args.min_similarity is not None else default_min_similarity
    )
    return QueryRequest(
        query=args.query,
        options=QueryOptions(
            max_results=args.max_results,
            min_similarity=min_similarity,
            rerank=not args.no_rerank,
            deep_research=args.deep_research,
            include_execution_trace=args.trace,
            enabled_sources=sources,
        ),
    )


def render_result(result: RetrievalResult, trace: ExecutionTrace | None = None) -> dict[str, Any]:
    """JSON-ready view of a result."""
    payload: dict[str, Any] = {
        "experts": [
            {"expert_id": expert_id, "relevance_score": round(result.score_of(expert_id), 4)}
            for expert_id in result.expert_ids
        ],
        "degraded_sources": sorted(result.degraded_sources),
    }
    if trace is not None:
        payload["execution_trace"] = trace.to_dict()
    return payload


async def run_search(args: argparse.Namespace) -> dict[str, Any]:
    settings = get_settings()
    request = build_request(args, settings.vector_min_similarity)
    trace = ExecutionTrace() if request.options.include_execution_trace else None
    async with create_services(settings) as services:
        result = await services.search(request, trace=trace)
    if trace is not None:
        log_execution_trace(trace, logger)
    return render_result(result, trace)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_structured_logging(
        log_file_path=settings.log_file_path,
        log_level=getattr(logging, args.log_level.upper(), None) if args.log_level else None,
    )
    set_correlation_id(uuid.uuid4().hex)

    try:
        output = asyncio.run(run_search(args))
    except (ValidationError, ValueError) as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except (ExpertMatchError, Neo4jError, QdrantError) as e:
        logger.error("Search failed: %s", e)
        print(f"Search failed: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        clear_correlation_id()

    print(json.dumps(output, indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
