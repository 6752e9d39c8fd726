import secrets
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_API_KEYS = {"", "your_api_key_here"}


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "QuickVibe"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    SECRET_KEY: str = secrets.token_urlsafe(32)
    # 60 minutes * 24 hours * 8 days = 8 days
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    FRONTEND_HOST: str = "http://localhost:3000"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    DATABASE_URL: str = "sqlite:///./quickvibe.db"

    # Anthropic exposes an OpenAI-compatible endpoint; the client speaks that API.
    ANTHROPIC_API_KEY: str = ""
    LLM_BASE_URL: str = "https://api.anthropic.com/v1/"
    MODEL_DEFAULT: str = "claude-sonnet-4-20250514"
    MODEL_TITLE: str = "claude-sonnet-4-20250514"
    MODEL_HAIKU: str = "claude-3-5-haiku-20241022"
    MODEL_SONNET: str = "claude-sonnet-4-20250514"
    MODEL_OPUS: str = "claude-opus-4-20250514"
    STREAM_MAX_TOKENS: int = 4096

    # e.g. "redis://localhost:6379/0"; unset disables rate limiting
    RATE_LIMIT_STORAGE_URI: str | None = None

    AGENTS_DIR: Path = Path(__file__).resolve().parent.parent / "agent" / "definitions"
    MAX_PARALLEL_AGENTS: int = 3

    @computed_field  # type: ignore[prop-decorator]
    @property
    def llm_configured(self) -> bool:
        return self.ANTHROPIC_API_KEY.strip() not in PLACEHOLDER_API_KEYS

    def model_for_tier(self, tier: str | None) -> str:
        tiers = {
            "haiku": self.MODEL_HAIKU,
            "sonnet": self.MODEL_SONNET,
            "opus": self.MODEL_OPUS,
        }
        return tiers.get((tier or "sonnet").lower(), self.MODEL_SONNET)


settings = Settings()  # type: ignore
