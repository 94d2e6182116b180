"""
Prompt templates for query analysis, reranking, gap analysis and query
refinement.

Templates use LangChain's f-string PromptTemplate; literal braces in the JSON
examples are doubled. Candidate profiles are rendered to plain text by
``render_profiles`` before being substituted.
"""

from __future__ import annotations

from collections.abc import Sequence

from langchain_core.prompts import PromptTemplate

from expertmatch.domain.models import CandidateProfile

_MAX_PROJECTS_PER_PROFILE = 3

RERANK_PROMPT = PromptTemplate.from_template(
    """You are ranking experts for a staffing request.

Request: {query}

Candidate experts:
{experts}

Score every candidate from 0.0 (irrelevant) to 1.0 (perfect match) for the
request, judging skills, technologies, seniority and project experience.
Use only the expert IDs listed above.

Respond with a JSON array only, best match first:
[{{"expertId": "<id>", "score": 0.0, "reason": "<one sentence>"}}]
"""
)

GAP_ANALYSIS_PROMPT = PromptTemplate.from_template(
    """You are reviewing the first-pass results of an expert search.

Request: {query}

Experts found so far:
{experts}

Decide whether these experts cover the request. List concrete gaps (skills or
technologies nobody covers), ambiguities in the request, and information that
is missing. Set "needsExpansion" to true only if a broader or different search
is likely to find better experts.

Respond with a JSON object only:
{{"identifiedGaps": [], "ambiguities": [], "missingInformation": [],
  "needsExpansion": false, "reasoning": "<short explanation>"}}
"""
)

QUERY_REFINEMENT_PROMPT = PromptTemplate.from_template(
    """An expert search did not fully cover the request below.

Original request: {query}

Identified gaps: {gaps}
Ambiguities: {ambiguities}
Missing information: {missing_information}

Write up to {max_queries} alternative search queries that would find experts
filling these gaps. Each query is a short standalone request.

Respond with a JSON array of strings only:
["<query 1>", "<query 2>"]
"""
)

QUERY_ANALYSIS_PROMPT = PromptTemplate.from_template(
    """Analyse this request for experts.

Request: {query}

Classify the intent as one of: {intents}.
List the skills and the technologies the request asks for, the seniority
levels it requires, and the working language if one is named.

Respond with a JSON object only:
{{"intent": "expert_search", "skills": [], "technologies": [],
  "seniorityLevels": [], "language": null}}
"""
)


def render_profile(profile: CandidateProfile) -> str:
    """Render one candidate as a few indented lines."""
    lines = [f"Expert ID: {profile.expert_id}"]
    if profile.name:
        lines.append(f"Name: {profile.name}")
    if profile.seniority:
        lines.append(f"Seniority: {profile.seniority}")
    if profile.summary:
        lines.append(f"Summary: {profile.summary}")
    if profile.projects:
        lines.append("Projects:")
        for project in profile.projects[:_MAX_PROJECTS_PER_PROFILE]:
            line = f"  - {project.name}"
            if project.role:
                line += f" ({project.role})"
            if project.customer:
                line += f" for {project.customer}"
            if project.technologies:
                line += f" - Technologies: {', '.join(project.technologies)}"
            lines.append(line)
    return "\n".join(lines)


def render_profiles(profiles: Sequence[CandidateProfile], expert_ids: Sequence[str] = ()) -> str:
    """Render all profiles; ids without a profile are listed by id alone."""
    rendered = [render_profile(profile) for profile in profiles]
    known = {profile.expert_id for profile in profiles}
    rendered.extend(f"Expert ID: {eid}" for eid in expert_ids if eid not in known)
    return "\n\n".join(rendered)


def _bullets(items: Sequence[str]) -> str:
    return "; ".join(items) if items else "none"


def format_query_analysis_prompt(query: str, intents: Sequence[str]) -> str:
    return QUERY_ANALYSIS_PROMPT.format(query=query, intents=", ".join(intents))


def format_rerank_prompt(query: str, experts: str) -> str:
    return RERANK_PROMPT.format(query=query, experts=experts)


def format_gap_analysis_prompt(query: str, experts: str) -> str:
    return GAP_ANALYSIS_PROMPT.format(query=query, experts=experts)


def format_query_refinement_prompt(
    query: str,
    gaps: Sequence[str],
    ambiguities: Sequence[str],
    missing_information: Sequence[str],
    max_queries: int,
) -> str:
    return QUERY_REFINEMENT_PROMPT.format(
        query=query,
        gaps=_bullets(gaps),
        ambiguities=_bullets(ambiguities),
        missing_information=_bullets(missing_information),
        max_queries=max_queries,
    )
