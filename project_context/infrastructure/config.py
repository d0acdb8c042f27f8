from typing import Optional
from pydantic import BaseModel, Field
import os


ENV_PREFIX = "PROJECT_CONTEXT_"


class ContextSettings(BaseModel):
    """Tunables for the file cache and context assembly"""

    # File store
    debounce_seconds: float = Field(default=0.5, ge=0, description="Quiet period before a durable write")

    # Access tracking
    max_working_set_size: int = Field(default=16, ge=1)
    access_max_age_seconds: float = Field(default=3600, gt=0)

    # Context assembly
    context_ceiling_tokens: int = Field(default=100_000, gt=0)
    per_file_token_budget: int = Field(default=10_000, gt=0)
    recent_message_count: int = Field(default=10, ge=0)
    near_limit_ratio: float = Field(default=0.9, gt=0, le=1)
    max_files_warning: int = Field(default=20, ge=0)

    # Compact variant
    compact_instruction_chars: int = Field(default=10_000, gt=0)
    compact_max_files: int = Field(default=8, ge=0)
    compact_history_count: int = Field(default=5, ge=0)

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "project-context"
    tracing_enabled: bool = False

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "ContextSettings":
        """Build settings from environment variables, e.g. PROJECT_CONTEXT_DEBOUNCE_SECONDS"""

        values = {}
        for name in cls.model_fields:
            raw: Optional[str] = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw

        # pydantic coerces strings into the declared field types
        return cls.model_validate(values)
