import json
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly (e.g., provider SDK keys).
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


def _coerce_json(value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./creative_factory.db"
    DB_POOL_SIZE: int = 20
    DB_POOL_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30

    CLERK_JWT_ISSUER: str
    CLERK_JWKS_URL: str
    CLERK_AUDIENCE: list[str] = ["http://localhost:5173", "backend"]

    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Admission control
    CREATIVE_MAX_CONCURRENT_RUNS: int = 3

    # Generation service
    LLM_DEFAULT_MODEL: str = "gpt-4.1-mini"
    GENERATION_STAGE_TIMEOUT_SECONDS: float = 90.0
    GENERATION_TEMPERATURE: float = 0.4

    # Blueprint fan-out
    CREATIVE_ASPECT_RATIOS: list[str] = ["9:16", "1:1", "16:9"]
    CREATIVE_VARIANTS_PER_FORMAT: int = 2
    CREATIVE_DEFAULT_DURATION_SECONDS: int = 15
    CREATIVE_DEFAULT_STYLE: str = "minimal_premium"

    # Render service
    RENDER_SERVICE_BASE_URL: str = "https://api.creatomate.com/v1"
    RENDER_SERVICE_API_KEY: str | None = None
    RENDER_SERVICE_TIMEOUT_SECONDS: float = 30.0
    RENDER_POLL_INTERVAL_SECONDS: float = 5.0
    RENDER_POLL_MAX_ATTEMPTS: int = 60
    RENDER_VIDEO_UNIT_COST: float = 0.05
    RENDER_THUMBNAIL_UNIT_COST: float = 0.01

    # Export
    EXPORT_DEFAULT_UTM_MEDIUM: str = "video"
    EXPORT_DEFAULT_VARIANTS: list[str] = ["A", "B"]

    @field_validator(
        "BACKEND_CORS_ORIGINS", "CLERK_AUDIENCE", "CREATIVE_ASPECT_RATIOS", "EXPORT_DEFAULT_VARIANTS", mode="before"
    )
    @classmethod
    def split_csv(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    model_config = SettingsConfigDict(env_file=".env", env_json_loads=_coerce_json, extra="ignore")


settings = Settings()
