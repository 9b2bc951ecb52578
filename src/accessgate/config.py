"""Configuration management using Pydantic Settings."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(
        default="AccessGate",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Debug mode",
    )

    # MongoDB settings
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    mongodb_database: str = Field(
        default="accessgate",
        description="MongoDB database name",
    )

    # Model scorer settings
    scorer_url: str = Field(
        default="http://localhost:8500/score",
        description="Endpoint of the external risk scoring service",
    )
    scorer_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Per-attempt timeout for a scoring call",
    )
    scorer_max_retries: int = Field(
        default=1,
        ge=0,
        le=1,
        description="Automatic retries after an unavailable scorer (at most one)",
    )
    scorer_retry_delay: float = Field(
        default=0.2,
        ge=0.0,
        description="Delay in seconds before the scorer retry",
    )

    # Risk classification thresholds
    risk_high_threshold: float = Field(
        default=-0.3,
        description="Anomaly scores below this are high risk",
    )
    risk_medium_threshold: float = Field(
        default=0.0,
        description="Anomaly scores below this (and not high) are medium risk",
    )
    severity_probability_weight: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Weight of classifier probability in the severity blend",
    )

    # Decision policy settings
    policy_violation_limit: int = Field(
        default=2,
        ge=0,
        description="Past violations allowed before automatic denial",
    )
    policy_training_recency_days: int = Field(
        default=365,
        ge=0,
        description="Maximum age of security training for sensitive resources",
    )
    policy_probability_ceiling: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Classifier risk probability above which requests are denied",
    )

    # OpenAI settings (answer synthesis and knowledge base embeddings)
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_answer_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used for answer synthesis",
    )
    openai_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model to use",
    )

    # ChromaDB settings (knowledge base)
    knowledge_base_enabled: bool = Field(
        default=False,
        description="Offer approved requests to the knowledge base index",
    )
    chromadb_host: str = Field(
        default="localhost",
        description="ChromaDB host",
    )
    chromadb_port: int = Field(
        default=8000,
        description="ChromaDB port",
    )
    chromadb_collection: str = Field(
        default="access_requests",
        description="ChromaDB collection name for the knowledge base",
    )

    def policy_config(self) -> "PolicyConfig":
        """Build the immutable policy configuration from these settings."""
        return PolicyConfig(
            high_threshold=self.risk_high_threshold,
            medium_threshold=self.risk_medium_threshold,
            severity_probability_weight=self.severity_probability_weight,
            violation_limit=self.policy_violation_limit,
            training_recency_days=self.policy_training_recency_days,
            probability_ceiling=self.policy_probability_ceiling,
        )


class PolicyConfig(BaseModel):
    """Thresholds shared by the risk classifier and the decision policy.

    Built once at startup and passed explicitly; never mutated.
    """

    model_config = ConfigDict(frozen=True)

    high_threshold: float = -0.3
    medium_threshold: float = 0.0
    severity_probability_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    violation_limit: int = Field(default=2, ge=0)
    training_recency_days: int = Field(default=365, ge=0)
    probability_ceiling: float = Field(default=0.8, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_threshold_order(self) -> "PolicyConfig":
        if self.high_threshold > self.medium_threshold:
            raise ValueError(
                "high_threshold must not exceed medium_threshold"
            )
        return self


# Global settings instance
settings = Settings()
