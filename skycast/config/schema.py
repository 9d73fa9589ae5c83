"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class _Section(BaseModel):
    """Config section: camelCase in config.json, snake_case in Python and env vars."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CameraConfig(_Section):
    """One snapshot endpoint."""
    label: str
    url: str


class CaptureConfig(_Section):
    """Snapshot capture configuration."""
    cameras: list[CameraConfig] = Field(default_factory=list)
    target_count: int = Field(default=3, ge=1)
    timeout: float = Field(default=30.0, gt=0)  # Per-snapshot deadline, seconds
    save_dir: str = ""  # Copy every capture here when set (debugging)


class ProviderConfig(_Section):
    """OpenAI-compatible vision model configuration."""
    api_key: str = ""
    api_base: str = "https://openrouter.ai/api/v1"
    model: str = "google/gemini-2.5-flash"
    timeout: float = 120.0
    max_tokens: int = 1024
    temperature: float = 0.7


class TelegramConfig(_Section):
    """Telegram delivery configuration."""
    token: str = ""  # Bot token from @BotFather
    chat_id: str = ""  # Channel or chat receiving the report
    batch_size: int = Field(default=5, ge=0, le=10)  # Photos per media group; 0 = one group
    batch_pause: float = Field(default=1.0, ge=0)  # Seconds between media groups
    proxy: str | None = None  # HTTP/SOCKS5 proxy URL


class RetrySettings(_Section):
    """Backoff schedule for one call site. Delays in seconds."""
    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=2.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)


class RetryConfig(_Section):
    """Retry schedules per call site."""
    capture: RetrySettings = Field(
        default_factory=lambda: RetrySettings(max_retries=2, initial_delay=2.0)
    )
    analysis: RetrySettings = Field(
        default_factory=lambda: RetrySettings(max_retries=3, initial_delay=120.0)
    )
    delivery: RetrySettings = Field(
        default_factory=lambda: RetrySettings(max_retries=3, initial_delay=2.0)
    )
    notify: RetrySettings = Field(
        default_factory=lambda: RetrySettings(max_retries=2, initial_delay=1.0)
    )
    typed_errors: bool = False  # Trust Temporary/PermanentDeliveryError before string matching


class ReportConfig(_Section):
    """Report wording context."""
    region: str = "Kabupaten Banjar, Martapura"
    timezone: str = "Asia/Makassar"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value


class StorageConfig(_Section):
    """Local storage locations."""
    data_dir: str = "~/.skycast"


class Config(BaseSettings):
    """Root configuration for skycast."""
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = SettingsConfigDict(env_prefix="SKYCAST_", env_nested_delimiter="__", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Highest priority first: real env, then .env, then config.json (init kwargs).
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def data_path(self) -> Path:
        """Get expanded data directory."""
        return Path(self.storage.data_dir).expanduser()

    @property
    def reports_path(self) -> Path:
        return self.data_path / "failed_reports"

    @property
    def logs_path(self) -> Path:
        return self.data_path / "logs"

    @property
    def capture_save_path(self) -> Path | None:
        if not self.capture.save_dir:
            return None
        return Path(self.capture.save_dir).expanduser()
