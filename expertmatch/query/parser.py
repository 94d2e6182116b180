"""
Query parser: rules first, optionally refined by a language model.

Turns free text such as "Senior Java developers with Spring Boot for a banking
RFP" into a ParsedQuery:
- intent: team / rfp / domain wording, otherwise expert search
- technologies: matched against a vocabulary (multi-word terms first)
- customers: matched against a caller-supplied list of known customers
- seniority levels and working language constraints
- keywords: remaining content words with stop words removed

``aparse`` can send the query to a completion client and merge the model's
intent, skills, technologies and constraints over the rule-based result. Any
model failure falls back to the rule-based result.

Design Principles:
- parse() is deterministic and makes no model calls
- Vocabulary can be overridden from a JSON file, loaded lazily
- Case-insensitive matching, canonical casing in the output
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from expertmatch.domain.exceptions import InvalidInputError, ModelResponseUnparseableError
from expertmatch.domain.models import ParsedQuery, QueryIntent
from expertmatch.llm.completion import CompletionClient
from expertmatch.llm.json_response import parse_json_response
from expertmatch.llm.prompts import format_query_analysis_prompt

logger = logging.getLogger(__name__)

# =============================================================================
# Vocabularies
# =============================================================================

DEFAULT_TECHNOLOGIES: tuple[str, ...] = (
    "Java",
    "Kotlin",
    "Scala",
    "Python",
    "Golang",
    "Rust",
    "C++",
    "C#",
    ".NET",
    "JavaScript",
    "TypeScript",
    "React",
    "Angular",
    "Vue",
    "Node.js",
    "Spring",
    "Spring Boot",
    "Django",
    "FastAPI",
    "Flask",
    "Kafka",
    "RabbitMQ",
    "PostgreSQL",
    "MySQL",
    "MongoDB",
    "Redis",
    "Elasticsearch",
    "Neo4j",
    "Cassandra",
    "Docker",
    "Kubernetes",
    "Terraform",
    "AWS",
    "Azure",
    "GCP",
    "Spark",
    "Hadoop",
    "Airflow",
    "TensorFlow",
    "PyTorch",
    "LangChain",
    "GraphQL",
    "gRPC",
    "Microservices",
    "Machine Learning",
)

SENIORITY_LEVELS: dict[str, str] = {
    "junior": "Junior",
    "middle": "Middle",
    "mid": "Middle",
    "senior": "Senior",
    "lead": "Lead",
    "principal": "Principal",
    "architect": "Architect",
}

LANGUAGES: dict[str, str] = {
    "english": "English",
    "german": "German",
    "french": "French",
    "spanish": "Spanish",
    "polish": "Polish",
}

STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "any", "are", "as", "at", "be", "by", "can", "did",
        "do", "does", "expert", "experts", "experience", "find", "for", "from",
        "have", "has", "help", "i", "in", "into", "is", "it", "looking", "me",
        "need", "needs", "of", "on", "or", "our", "people", "person", "please",
        "show", "someone", "that", "the", "their", "them", "to", "us", "want",
        "we", "who", "with", "worked", "working", "years",
    }
)

_TEAM_PATTERN = re.compile(r"\bteams?\b", re.IGNORECASE)
_RFP_PATTERN = re.compile(r"\b(rfp|rfps|proposal|proposals|tender)\b", re.IGNORECASE)
_DOMAIN_PATTERN = re.compile(r"\b(domain|industry|sector)\b", re.IGNORECASE)
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9+#.\-]*")


def _term_pattern(term: str) -> re.Pattern[str]:
    """Whole-term match that tolerates symbols such as C++ or .NET."""
    return re.compile(
        r"(?<![A-Za-z0-9])" + re.escape(term) + r"(?![A-Za-z0-9+#])",
        re.IGNORECASE,
    )


def _extract_terms(
    patterns: Iterable[tuple[str, re.Pattern[str]]],
    text: str,
) -> tuple[list[str], str]:
    """Find terms in order of appearance and blank them out of ``text``.

    Matches are replaced by spaces of equal length so later positions stay
    comparable.
    """
    found: list[tuple[int, str]] = []
    for term, pattern in patterns:
        match = pattern.search(text)
        if match is None:
            continue
        found.append((match.start(), term))
        text = pattern.sub(lambda m: " " * len(m.group()), text)
    found.sort(key=lambda item: item[0])
    return [term for _, term in found], text


def _merge_terms(base: Iterable[str], extra: Iterable[str]) -> tuple[str, ...]:
    """``base`` followed by the new entries of ``extra``, compared case-insensitively."""
    merged: list[str] = []
    seen: set[str] = set()
    for term in (*base, *extra):
        term = term.strip()
        if term and term.casefold() not in seen:
            seen.add(term.casefold())
            merged.append(term)
    return tuple(merged)


# =============================================================================
# Model Reply Parsing
# =============================================================================


class QueryAnalysis(BaseModel):
    """Model view of a query; every field is optional."""

    model_config = ConfigDict(extra="ignore")

    intent: str | None = None
    skills: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    seniority_levels: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("seniorityLevels", "seniority_levels", "seniority"),
    )
    language: str | None = None


def parse_query_analysis(text: str) -> QueryAnalysis:
    """Parse a query-analysis reply.

    Raises:
        ModelResponseUnparseableError: If the reply is not a JSON object of
            the expected shape
    """
    data = parse_json_response(text)
    if not isinstance(data, dict):
        raise ModelResponseUnparseableError("Query analysis must be a JSON object", response=text)
    try:
        return QueryAnalysis.model_validate(data)
    except ValidationError as e:
        raise ModelResponseUnparseableError(
            f"Query analysis does not match the expected shape: {e.error_count()} errors",
            response=text,
            cause=e,
        ) from e


# =============================================================================
# Parser
# =============================================================================


class QueryParser:
    """Extracts intent, entities and constraints from raw query text.

    Example:
        >>> parser = QueryParser(known_customers=["Acme Bank"])
        >>> parsed = parser.parse("Senior Java team for Acme Bank")
        >>> parsed.intent, parsed.technologies, parsed.customers
        (<QueryIntent.TEAM_FORMATION: 'team_formation'>, ('Java',), ('Acme Bank',))
    """

    def __init__(
        self,
        technologies: Iterable[str] | None = None,
        known_customers: Iterable[str] = (),
        vocabulary_path: Path | str | None = None,
        completion_client: CompletionClient | None = None,
    ) -> None:
        """Initialize the parser.

        Args:
            technologies: Technology vocabulary (default: DEFAULT_TECHNOLOGIES)
            known_customers: Customer names to recognise in queries
            vocabulary_path: JSON file with a "technologies" list; loaded on
                first parse and replaces ``technologies`` when present
            completion_client: Model used by aparse(); None keeps aparse()
                rule-based
        """
        self._technologies = tuple(technologies) if technologies is not None else DEFAULT_TECHNOLOGIES
        self._customers = tuple(known_customers)
        self._vocabulary_path = Path(vocabulary_path) if vocabulary_path else None
        self._patterns: list[tuple[str, re.Pattern[str]]] | None = None
        self._customer_patterns = [(name, _term_pattern(name)) for name in self._customers]
        self._completion_client = completion_client

    def _ensure_loaded(self) -> list[tuple[str, re.Pattern[str]]]:
        if self._patterns is not None:
            return self._patterns

        if self._vocabulary_path is not None:
            try:
                data = json.loads(self._vocabulary_path.read_text(encoding="utf-8"))
                self._technologies = tuple(data.get("technologies", self._technologies))
                logger.info(
                    "Loaded %d technologies from %s",
                    len(self._technologies),
                    self._vocabulary_path,
                )
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(
                    "Technology vocabulary not loaded from %s, using defaults: %s",
                    self._vocabulary_path,
                    e,
                )

        # Longest terms first so "Spring Boot" wins over "Spring"
        ordered = sorted(self._technologies, key=len, reverse=True)
        self._patterns = [(term, _term_pattern(term)) for term in ordered]
        return self._patterns

    def parse(self, text: str) -> ParsedQuery:
        """Parse raw query text.

        Args:
            text: Free-text query

        Returns:
            Immutable ParsedQuery

        Raises:
            InvalidInputError: If text is blank
        """
        if not text or not text.strip():
            raise InvalidInputError("Query text must not be blank")

        text = text.strip()
        remaining = text
        technologies, remaining = _extract_terms(self._ensure_loaded(), remaining)
        customers, remaining = _extract_terms(self._customer_patterns, remaining)

        seniority: list[str] = []
        language: str | None = None
        keywords: list[str] = []
        for token in _TOKEN_PATTERN.findall(remaining):
            lowered = token.lower().strip(".-")
            if not lowered:
                continue
            if lowered in SENIORITY_LEVELS:
                level = SENIORITY_LEVELS[lowered]
                if level not in seniority:
                    seniority.append(level)
                continue
            if lowered in LANGUAGES:
                language = language or LANGUAGES[lowered]
                continue
            if lowered in STOP_WORDS or len(lowered) < 2:
                continue
            if lowered not in keywords:
                keywords.append(lowered)

        parsed = ParsedQuery(
            text=text,
            keywords=tuple(keywords),
            technologies=tuple(technologies),
            customers=tuple(customers),
            intent=self.classify_intent(text),
            seniority_levels=tuple(seniority),
            language=language,
        )
        logger.debug(
            "Parsed query intent=%s technologies=%s keywords=%s",
            parsed.intent.value,
            parsed.technologies,
            parsed.keywords,
        )
        return parsed

    async def aparse(self, text: str) -> ParsedQuery:
        """Parse with the rules, then merge in the model's analysis.

        Without a completion client this is parse(). The model's intent
        replaces the rule-based one when it names a known intent; its skills,
        technologies and seniority levels are appended to the rule-based
        ones, and its language fills in a missing one. If the call fails or
        the reply is unusable, the rule-based result is returned.

        Raises:
            InvalidInputError: If text is blank
        """
        parsed = self.parse(text)
        if self._completion_client is None:
            return parsed

        prompt = format_query_analysis_prompt(parsed.text, [intent.value for intent in QueryIntent])
        try:
            reply = await self._completion_client.complete(prompt)
            analysis = parse_query_analysis(reply)
        except Exception as e:
            logger.warning("Query analysis failed, using rule-based parse: %s", e)
            logger.debug("Query analysis failure detail", exc_info=True)
            return parsed
        return self._merge_analysis(parsed, analysis)

    @staticmethod
    def _merge_analysis(parsed: ParsedQuery, analysis: QueryAnalysis) -> ParsedQuery:
        intent = parsed.intent
        if analysis.intent:
            try:
                intent = QueryIntent(analysis.intent.strip().lower())
            except ValueError:
                logger.debug("Ignoring unknown model intent %r", analysis.intent)

        technologies = _merge_terms(parsed.technologies, analysis.technologies)
        known = {term.casefold() for term in technologies}
        skills = [skill.lower() for skill in analysis.skills if skill.strip().casefold() not in known]
        seniority = [
            SENIORITY_LEVELS[level.strip().lower()]
            for level in analysis.seniority_levels
            if level.strip().lower() in SENIORITY_LEVELS
        ]
        language = parsed.language
        if language is None and analysis.language and analysis.language.strip():
            model_language = analysis.language.strip()
            language = LANGUAGES.get(model_language.lower(), model_language)

        merged = ParsedQuery(
            text=parsed.text,
            keywords=_merge_terms(parsed.keywords, skills),
            technologies=technologies,
            customers=parsed.customers,
            intent=intent,
            seniority_levels=_merge_terms(parsed.seniority_levels, seniority),
            language=language,
        )
        logger.debug(
            "Model analysis intent=%s technologies=%s keywords=%s",
            merged.intent.value,
            merged.technologies,
            merged.keywords,
        )
        return merged

    @staticmethod
    def classify_intent(text: str) -> QueryIntent:
        """Classify intent from wording alone."""
        if _TEAM_PATTERN.search(text):
            return QueryIntent.TEAM_FORMATION
        if _RFP_PATTERN.search(text):
            return QueryIntent.RFP_RESPONSE
        if _DOMAIN_PATTERN.search(text):
            return QueryIntent.DOMAIN_INQUIRY
        return QueryIntent.EXPERT_SEARCH
