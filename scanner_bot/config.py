"""Configuration management for the scanner bot."""
import os
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.exceptions import ConfigurationError

DEFAULT_MODEL = "gemini-3-flash-preview"


class Settings(BaseSettings):
    """Centralized configuration for watching, analysis and filing."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=()
    )

    # API Configuration
    gemini_api_key: str = Field(..., description="Gemini API key for document analysis")
    model_name: str = Field(default=DEFAULT_MODEL, description="Gemini model used for extraction")

    # File Paths
    watch_directory: Path | None = Field(default=None, description="Directory scanners drop files into")
    destination_directory: Path | None = Field(default=None, description="Root of the filed document tree")
    originals_dirname: str = Field(default="originals", description="Archive subdirectory under the destination")

    # Stability Configuration
    stability_threshold_seconds: float = Field(default=10.0, gt=0, description="Size must hold this long")
    stability_poll_interval: float = Field(default=1.0, gt=0, description="Seconds between size samples")
    stability_max_wait: float = Field(default=300.0, gt=0, description="Give up on a file after this long")

    # Remote asset Configuration
    upload_poll_interval: float = Field(default=1.0, gt=0, description="Seconds between asset state checks")
    upload_processing_timeout: float = Field(default=300.0, gt=0, description="Max wait for an asset to become ACTIVE")
    request_timeout_seconds: float = Field(default=120.0, gt=0, description="Upper bound for a single model call")

    # Concurrency and Retry Configuration
    quota_limit: int = Field(default=4, ge=1, description="Concurrent model calls across all files")
    retry_max_attempts: int = Field(default=3, ge=1, description="Maximum attempts per model call")
    retry_base_delay: float = Field(default=2.0, description="Base delay for exponential backoff")
    retry_max_delay: float = Field(default=10.0, description="Maximum delay between retries")
    retry_jitter_range: float = Field(default=3.0, description="Jitter range for retry delays")

    # Filing Configuration
    currency_marker: str = Field(default="円", description="Suffix written after the amount in filenames")
    accepted_extensions: tuple[str, ...] = Field(
        default=(".jpg", ".jpeg", ".png", ".pdf"),
        description="Extensions treated as scanned documents"
    )

    # Debug Configuration
    debug_responses: bool = Field(default=False, description="Log raw model responses")

    @field_validator("gemini_api_key")
    @classmethod
    def api_key_must_not_be_empty(cls, v):
        """Ensure API key is provided."""
        if not v or v.strip() == "":
            raise ValueError("GEMINI_API_KEY must be provided")
        return v.strip()

    @field_validator("debug_responses", mode="before")
    @classmethod
    def parse_debug_flag(cls, v):
        """Parse debug flag from string."""
        if isinstance(v, str):
            return v == "1" or v.lower() == "true"
        return v

    @field_validator("accepted_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v):
        """Accept ".jpg,.png" strings and lowercase every entry."""
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        return tuple(normalized)

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Create Settings from the environment, translating failures to ConfigurationError."""
        values = {
            "gemini_api_key": os.getenv("GEMINI_API_KEY", ""),
            "debug_responses": os.getenv("DEBUG_RESPONSES", "0"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as exc:
            first = exc.errors()[0]
            setting = ".".join(str(part) for part in first.get("loc", ())) or "settings"
            raise ConfigurationError(setting, first.get("msg", str(exc))) from exc

    @property
    def api_client_kwargs(self) -> dict:
        """Get API client configuration.

        Uploads go through the Files API, which only the Gemini Developer
        client offers, so GOOGLE_GENAI_USE_VERTEXAI in the environment must not
        switch the client over.
        """
        return {"vertexai": False, "api_key": self.gemini_api_key}

    def is_accepted(self, path: Path) -> bool:
        """Whether the file extension marks a scanned document."""
        return path.suffix.lower() in self.accepted_extensions
