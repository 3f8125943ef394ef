"""Application configuration contract."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from context_tiers.errors import ConfigError

TOKEN_ESTIMATORS = frozenset({"tiktoken", "heuristic"})
APP_ENVS = frozenset({"dev", "test", "prod"})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")

    agents_dir: str = Field(alias="AGENTS_DIR", default="ai-agents")
    summaries_dir: str = Field(alias="SUMMARIES_DIR", default="machine-data/ai-agents-json")

    token_estimator: str = Field(alias="TOKEN_ESTIMATOR", default="tiktoken")
    token_encoding: str = Field(alias="TOKEN_ENCODING", default="cl100k_base")
    chars_per_token: float = Field(alias="CHARS_PER_TOKEN", default=4.0)

    default_budget_tokens: int = Field(alias="DEFAULT_BUDGET_TOKENS", default=8000)
    # Share of a loading plan budget held back for shared project context.
    plan_reserved_fraction: float = Field(alias="PLAN_RESERVED_FRACTION", default=0.2)


def validate_settings(settings: Settings) -> None:
    invalid: list[str] = []
    if settings.app_env not in APP_ENVS:
        invalid.append("APP_ENV(one of dev|test|prod)")
    if settings.token_estimator not in TOKEN_ESTIMATORS:
        invalid.append("TOKEN_ESTIMATOR(one of tiktoken|heuristic)")
    if not settings.token_encoding.strip():
        invalid.append("TOKEN_ENCODING")
    if settings.chars_per_token <= 0:
        invalid.append("CHARS_PER_TOKEN(must be > 0)")
    if settings.default_budget_tokens < 0:
        invalid.append("DEFAULT_BUDGET_TOKENS(must be >= 0)")
    if not 0 <= settings.plan_reserved_fraction < 1:
        invalid.append("PLAN_RESERVED_FRACTION(must be in [0, 1))")
    if not settings.agents_dir.strip():
        invalid.append("AGENTS_DIR")

    if invalid:
        keys = ", ".join(sorted(set(invalid)))
        raise ConfigError(f"invalid configuration: {keys}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
