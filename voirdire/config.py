from pathlib import Path
from typing import Annotated, Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigurationError
from .llm import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from .prompts import SYSTEM_PROMPT_PATH
from .validation import SCHEMA_DIR

ENV_PREFIX = "VOIRDIRE_"
API_KEY_ENV = "ANTHROPIC_API_KEY"


class AnalyzerConfig(BaseSettings):
    """Process-wide settings, read once from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    api_key: Optional[str] = Field(default=None, validation_alias=API_KEY_ENV)
    model: str = Field(default=DEFAULT_MODEL)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    timeout_seconds: float = Field(default=120.0, gt=0)
    system_prompt_path: Path = Field(default=SYSTEM_PROMPT_PATH, validation_alias="VOIRDIRE_SYSTEM_PROMPT")
    schema_dir: Path = Field(default=SCHEMA_DIR)
    enforce_turn_refs: bool = Field(default=True)
    # Comma separated in the environment.
    api_tokens: Annotated[tuple[str, ...], NoDecode] = Field(default=())
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    @field_validator("api_tokens", mode="before")
    @classmethod
    def split_tokens(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(token.strip() for token in value.split(",") if token.strip())
        return value

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(f"Anthropic API key not configured. Add {API_KEY_ENV} to the environment or .env")
        return self.api_key


def _env_name(field_name: str) -> str:
    field = AnalyzerConfig.model_fields.get(field_name)
    if field is None:
        return field_name
    if isinstance(field.validation_alias, str):
        return field.validation_alias
    return f"{ENV_PREFIX}{field_name.upper()}"


def load_config(env_file: str | Path | None = None) -> AnalyzerConfig:
    """Read configuration once at startup.

    The API key is not required here so offline commands keep working; the
    backend asks for it through ``require_api_key`` when it is built.
    """
    overrides: dict[str, Any] = {}
    if env_file is not None:
        overrides["_env_file"] = env_file
    try:
        return AnalyzerConfig(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{_env_name(str(error['loc'][0])) if error['loc'] else 'config'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
