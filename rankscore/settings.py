"""Application settings loaded from environment variables."""

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the RankScore service."""

    model_config = SettingsConfigDict(env_prefix="RANKSCORE_", extra="ignore")

    app_name: str = "RankScore API"
    log_level: str = "INFO"

    # Text judge
    openai_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("RANKSCORE_OPENAI_MODEL", "OPENAI_MODEL"),
    )
    judge_mock: bool = Field(
        default=False,
        validation_alias=AliasChoices("RANKSCORE_JUDGE_MOCK", "OPENAI_MOCK"),
    )
    judge_request_timeout_seconds: float = 180.0
    judge_max_output_tokens: int = 16384

    # Per-stage timeouts and sampling temperatures
    generate_timeout_seconds: float = 240.0
    rank_timeout_seconds: float = 120.0
    insert_timeout_seconds: float = 120.0

    generate_temperature: float = 0.8
    rank_temperature: float = 0.3
    insert_temperature: float = 0.3

    # Reject rankings that are not an exact permutation of the generated ids
    strict_ranking: bool = True

    # CORS configuration
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("RANKSCORE_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    @model_validator(mode="after")
    def _normalize_log_level(self) -> "Settings":
        self.log_level = self.log_level.strip().upper() or "INFO"
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
