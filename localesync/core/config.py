from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(ValueError):
    """Raised when run options are missing or out of range."""


class TranslationSettings(BaseSettings):
    """Translation run configuration loaded from environment, .env or a config file."""

    openai_api_key: Optional[SecretStr] = Field(default=None, alias="OPENAI_API_KEY")
    assistant_id: Optional[str] = Field(default=None, alias="OPENAI_ASSISTANT_ID")
    product_context: str = Field(default="", alias="PRODUCT_CONTEXT")
    extra_context_by_filename: dict[str, str] = Field(
        default_factory=dict, alias="EXTRA_CONTEXT_BY_FILENAME"
    )

    source_file: str = Field(default="en.json", alias="SOURCE_FILE")
    source_directory: str = Field(default=".", alias="SOURCE_DIRECTORY")
    output_files: list[str] = Field(default_factory=list, alias="OUTPUT_FILES")
    output_directory: str = Field(default=".", alias="OUTPUT_DIRECTORY")

    recreate: bool = Field(default=False, alias="RECREATE")
    parallel_limit: int = Field(default=10, gt=0, alias="PARALLEL_LIMIT")
    batch_parallel_limit: Optional[int] = Field(
        default=None, gt=0, alias="BATCH_PARALLEL_LIMIT"
    )
    chunk_size: int = Field(default=3000, gt=0, alias="CHUNK_SIZE")
    max_retries: int = Field(default=5, ge=0, alias="MAX_RETRIES")
    retry_initial_delay: float = Field(default=1.0, ge=0, alias="RETRY_INITIAL_DELAY")
    retry_buffer_seconds: float = Field(default=0.5, ge=0, alias="RETRY_BUFFER_SECONDS")

    diff_base: Optional[str] = Field(default=None, alias="DIFF_BASE")
    create_missing_targets: bool = Field(default=True, alias="CREATE_MISSING_TARGETS")
    validate_key_parity: bool = Field(default=False, alias="VALIDATE_KEY_PARITY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _apply_batch_limit_default(self) -> "TranslationSettings":
        if self.batch_parallel_limit is None:
            self.batch_parallel_limit = self.parallel_limit
        return self

    def require_target_contexts(self) -> None:
        """Fail fast when an output file has no instruction entry."""
        missing = [
            filename
            for filename in self.output_files
            if not self.extra_context_by_filename.get(filename)
        ]
        if missing:
            raise ConfigurationError(
                f"No extra context found for filename(s): {', '.join(missing)}"
            )

    def require_credentials(self) -> None:
        if not self.openai_api_key or not self.assistant_id:
            raise ConfigurationError(
                "OPENAI_API_KEY and OPENAI_ASSISTANT_ID must be configured to call the assistant."
            )


@lru_cache
def get_settings() -> TranslationSettings:
    """Return cached translation settings."""
    return TranslationSettings()  # type: ignore[call-arg]
