"""
Application configuration and settings.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Built-in prompt templates ship inside the package
PACKAGE_CONFIG_DIR = Path(__file__).parent / "config"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/reeldocs.db"
    database_echo: bool = False

    # AI Services
    gemini_api_key: str | None = None
    gemini_url: str = "https://generativelanguage.googleapis.com"
    video_model: str = "gemini-2.5-flash"  # Video understanding (segments)
    anthropic_api_key: str | None = None
    docs_model: str = "claude-sonnet-4-5"  # Documentation generation
    translation_model: str = "claude-sonnet-4-5"  # Captions and articles
    llm_timeout: int = 300

    # Remote video processing poll loop
    video_poll_interval: float = 5.0
    video_poll_max_attempts: int = 360  # 30 min at the default interval
    video_mime_type: str = "video/mp4"

    # Translation
    translation_batch_size: int = 60  # Text fields per translation request

    # Object storage
    storage_backend: str = "local"  # "local" or "supabase"
    storage_dir: Path = Path("/data/storage")
    storage_bucket: str = "videos"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    signed_url_ttl: int = 3600

    # Background workers
    pipeline_workers: int = 2

    # HTTP
    cors_origins: str = "*"

    # Paths
    config_dir: Path = PACKAGE_CONFIG_DIR
    prompts_dir: Path | None = None  # External prompts directory (overrides built-in)

    # Logging
    log_level: str = "INFO"
    log_format: str = "structured"  # "simple" or "structured"

    # Per-module log levels (optional overrides)
    log_level_ai_client: str | None = None
    log_level_pipeline: str | None = None
    log_level_stages: str | None = None
    log_level_jobs: str | None = None
    log_level_db: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_prompt(
    stage: str,
    component: str,
    model: str | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Load a prompt template with external folder priority and model-specific fallback.

    Lookup order (first found wins):
    1. prompts_dir/{stage}/{component}_{model_family}.md (external, model-specific)
    2. prompts_dir/{stage}/{component}.md (external, generic)
    3. config_dir/prompts/{stage}/{component}_{model_family}.md (built-in, model-specific)
    4. config_dir/prompts/{stage}/{component}.md (built-in, generic)

    Model family is extracted from model name:
    - "gemini-2.5-flash" -> "gemini"
    - "claude-sonnet-4-5" -> "claude-sonnet"

    Args:
        stage: Pipeline stage ("extract", "generate", "translate")
        component: Prompt component ("segments", "instructions", "text", ...)
        model: Model name for model-specific prompts (optional)
        settings: Optional settings instance

    Returns:
        Prompt template content

    Raises:
        FileNotFoundError: If no matching prompt file is found
    """
    if settings is None:
        settings = get_settings()

    model_family = get_model_family(model) if model else None

    paths_to_check: list[Path] = []

    # External prompts directory (highest priority)
    if settings.prompts_dir and settings.prompts_dir.exists():
        if model_family:
            paths_to_check.append(
                settings.prompts_dir / stage / f"{component}_{model_family}.md"
            )
        paths_to_check.append(settings.prompts_dir / stage / f"{component}.md")

    # Built-in prompts directory (fallback)
    builtin_prompts_dir = settings.config_dir / "prompts"
    if model_family:
        paths_to_check.append(builtin_prompts_dir / stage / f"{component}_{model_family}.md")
    paths_to_check.append(builtin_prompts_dir / stage / f"{component}.md")

    for path in paths_to_check:
        if path.exists():
            return path.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Prompt not found: stage={stage}, component={component}, model={model}. "
        f"Checked paths: {[str(p) for p in paths_to_check]}"
    )


def get_model_family(model: str) -> str:
    """
    Extract model family from a full model name.

    Strips the version suffix: everything after the first digit-led
    dash/colon/dot segment.

    Examples:
        >>> get_model_family("gemini-2.5-flash")
        'gemini'
        >>> get_model_family("claude-sonnet-4-5")
        'claude-sonnet'
    """
    parts: list[str] = []
    for part in model.lower().replace(":", "-").split("-"):
        if not part or part[0].isdigit():
            break
        parts.append(part)
    return "-".join(parts) or model.lower()
