"""
Configuration Management for Fintrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The backend URL, dashboard constants and upload limits live in one place,
so views and tests never hardcode them.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CATEGORY_PALETTE = (
    "#FF6B6B,#4ECDC4,#45B7D1,#96CEB4,#FECA57,#FF8A65,#BA68C8"
)


class ApiSettings(BaseSettings):
    """Remote REST backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_API_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:5000/api/v1",
        description="Versioned REST root of the finance backend"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Transport timeout (backend cold starts can be slow)"
    )
    verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are joined with a leading slash."""
        return v.rstrip("/")


class DashboardSettings(BaseSettings):
    """Constants used by the aggregate calculators."""

    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_DASHBOARD_",
        extra="ignore"
    )

    top_categories: int = Field(
        default=5,
        ge=1,
        description="How many categories the breakdown keeps"
    )
    trend_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Length of the spending trend series"
    )
    recent_transactions: int = Field(
        default=5,
        ge=0,
        description="How many transactions the dashboard lists as recent"
    )
    category_palette: str = Field(
        default=DEFAULT_CATEGORY_PALETTE,
        description="Comma-separated display colors, assigned cyclically"
    )
    budget_warning_percent: float = Field(
        default=75.0,
        ge=0,
        description="Percent used at which a budget turns amber"
    )
    budget_critical_percent: float = Field(
        default=90.0,
        ge=0,
        description="Percent used at which a budget turns red"
    )
    budget_alert_percent: float = Field(
        default=90.0,
        ge=0,
        description="Percent used above which an active budget raises an alert"
    )
    currency_symbol: str = Field(
        default="$",
        description="Symbol used when formatting amounts"
    )

    @property
    def palette(self) -> list[str]:
        """Get the palette as a list."""
        return [c.strip() for c in self.category_palette.split(",") if c.strip()]


class OcrSettings(BaseSettings):
    """Mock receipt OCR endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_OCR_",
        extra="ignore"
    )

    upload_path: str = Field(
        default="/mock-ocr/upload",
        description="Path of the OCR upload endpoint, relative to the API root"
    )
    form_field: str = Field(
        default="receipt",
        description="Multipart field name carrying the image"
    )
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )
    high_confidence_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Confidence above which a recognition is shown as reliable"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug logging"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console renderer otherwise)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def dashboard(self) -> DashboardSettings:
        return DashboardSettings()

    @property
    def ocr(self) -> OcrSettings:
        return OcrSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups load cleanly.

    Returns a dict of {setting_name: is_valid}, plus a
    `<name>_error` entry for every group that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("api", "dashboard", "ocr", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
