import yaml
import os
from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field

from matchscore.models import CategoryWeights


class DatabaseConfig(BaseModel):
    # None = in-memory record store
    url: Optional[str] = None
    echo: bool = False


class ScoringConfig(BaseModel):
    """
    Configuration for the deterministic scorer.

    Category weights are percentages and must sum to 100.
    """
    algorithm_version: str = "v4.0-deterministic"
    weights: CategoryWeights = Field(default_factory=CategoryWeights)


class ModelPricing(BaseModel):
    """USD per 1K tokens."""
    input_per_1k: float = 0.0
    output_per_1k: float = 0.0


class EnrichmentConfig(BaseModel):
    """
    Configuration for the semantic enrichment client (LLM).

    hybrid_blend_ratio is the share of the LLM/deterministic difference applied
    to the overall score in hybrid mode; hybrid_max_adjustment caps that delta
    in points either way.
    """
    enabled: bool = True
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    max_tokens: int = 2000
    insights_max_tokens: int = 2500
    temperature: float = 0.3
    insights_temperature: float = 0.4
    timeout_seconds: float = 30.0
    max_retries: int = 3
    hybrid_blend_ratio: float = Field(default=0.3, ge=0.0, le=1.0)
    hybrid_max_adjustment: float = Field(default=10.0, ge=0.0, le=100.0)
    # Skip the strategic insights call
    fast_mode: bool = False
    pricing: Dict[str, ModelPricing] = Field(default_factory=lambda: {
        "gpt-4o-mini": ModelPricing(input_per_1k=0.00015, output_per_1k=0.0006),
        "gpt-4o": ModelPricing(input_per_1k=0.0025, output_per_1k=0.01),
    })


class CacheConfig(BaseModel):
    backend: Literal["memory", "redis"] = "memory"
    redis_url: Optional[str] = None
    key_prefix: str = "score"
    score_ttl_seconds: int = 3600
    recent_scores_ttl_seconds: int = 60
    recent_window_hours: int = 24


class BatchConfig(BaseModel):
    max_batch_size: int = 50
    default_concurrency: int = 3
    max_concurrency: int = 10


class DispatchConfig(BaseModel):
    enabled: bool = False
    redis_url: Optional[str] = None
    queue_name: str = "match-scoring"
    job_timeout_seconds: int = 600


class QuotaConfig(BaseModel):
    enabled: bool = False
    redis_url: Optional[str] = None
    # resource type -> monthly limit per organization
    monthly_limits: Dict[str, int] = Field(default_factory=lambda: {"llm_scoring": 500})


class AppConfig(BaseModel):
    database: DatabaseConfig = DatabaseConfig()
    scoring: ScoringConfig = ScoringConfig()
    enrichment: EnrichmentConfig = EnrichmentConfig()
    cache: CacheConfig = CacheConfig()
    batch: BatchConfig = BatchConfig()
    dispatch: DispatchConfig = DispatchConfig()
    quota: QuotaConfig = QuotaConfig()


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from another directory), try the repo root
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    data = {}
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # Allow env var override for LLM endpoint and key
    env_llm_base_url = os.environ.get("LLM_BASE_URL")
    if env_llm_base_url:
        data.setdefault('enrichment', {})
        data['enrichment']['base_url'] = env_llm_base_url

    env_llm_api_key = os.environ.get("LLM_API_KEY") or os.environ.get("OPENAI_API_KEY")
    if env_llm_api_key:
        data.setdefault('enrichment', {})
        data['enrichment']['api_key'] = env_llm_api_key

    # One Redis URL feeds cache, dispatch and quota unless they set their own
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        for section in ('cache', 'dispatch', 'quota'):
            data.setdefault(section, {})
            data[section]['redis_url'] = env_redis_url

    return AppConfig(**data)
