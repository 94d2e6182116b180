"""
Configuration module for expert-match.

Uses pydantic-settings for environment-based configuration of the retrieval
backends (Neo4j, Qdrant), the language model used for reranking and deep
research, and the fusion/concurrency knobs of the hybrid engine.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Source weights feed reciprocal-rank fusion:
    - fusion_vector_weight: weight of the semantic (vector) ranking
    - fusion_graph_weight: weight of the relationship-graph ranking
    - fusion_keyword_weight: weight of the full-text ranking
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # NEO4J CONFIGURATION
    # ===========================================
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j Bolt protocol URL",
    )
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(
        default="devpassword",
        description="Neo4j password",
    )
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")

    # ===========================================
    # QDRANT CONFIGURATION
    # ===========================================
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant REST API URL",
    )
    qdrant_api_key: str | None = Field(default=None, description="Qdrant API key")
    qdrant_collection: str = Field(
        default="expert_experience",
        description="Collection holding work-experience embeddings",
    )

    # ===========================================
    # EMBEDDING CONFIGURATION
    # ===========================================
    embedding_model: str = Field(
        default="all-mpnet-base-v2",
        description="Sentence-BERT model for query embeddings",
    )
    embedding_dimension: int = Field(
        default=768,
        description="Fallback vector width when the collection cannot be inspected",
    )

    # ===========================================
    # LLM CONFIGURATION
    # ===========================================
    llm_enabled: bool = Field(
        default=True,
        description="Use a chat model for reranking and deep research",
    )
    llm_model: str = Field(default="gpt-4o-mini", description="Chat model name")
    llm_api_key: str | None = Field(default=None, description="Chat model API key")
    llm_base_url: str | None = Field(
        default=None,
        description="OpenAI-compatible endpoint (e.g. a local Ollama server)",
    )
    llm_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    llm_query_analysis: bool = Field(
        default=False,
        description="Also ask the chat model to classify and extract entities from queries",
    )

    # ===========================================
    # FUSION CONFIGURATION
    # ===========================================
    fusion_vector_weight: float = Field(default=1.0, ge=0.0)
    fusion_graph_weight: float = Field(default=0.8, ge=0.0)
    fusion_keyword_weight: float = Field(default=0.6, ge=0.0)
    fusion_rrf_k: int = Field(
        default=0,
        ge=0,
        description="Rank offset k in weight/(k + rank + 1); 60 gives classic RRF",
    )

    # ===========================================
    # RETRIEVAL CONFIGURATION
    # ===========================================
    vector_min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)
    vector_candidate_multiplier: int = Field(
        default=3,
        ge=1,
        description="Over-fetch factor; several stored points may belong to one expert",
    )
    graph_result_limit: int = Field(default=100, ge=1)
    keyword_fulltext_index: str = Field(
        default="expertText",
        description="Neo4j full-text index over expert and project text",
    )
    source_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # ===========================================
    # DEEP RESEARCH CONFIGURATION
    # ===========================================
    max_refined_queries: int = Field(default=3, ge=1)
    max_concurrent_expansions: int = Field(default=3, ge=1)

    # ===========================================
    # LOGGING CONFIGURATION
    # ===========================================
    log_file_path: str | None = Field(
        default=None,
        description="Rotating JSON log file; console only when unset",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
