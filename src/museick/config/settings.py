"""Application settings loaded from environment variables and .env."""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromotionPolicy(str, Enum):
    """Who keeps "at most one selected per slot" true on promotion.

    Hey future me - DEMOTE_PREVIOUS makes the client demote the slot's current
    selected record back to candidate BEFORE promoting the new one, so the
    invariant holds at every instant even against a dumb backend. BACKEND
    trusts the server to do it (ours does, when a role update selects a record).
    """

    DEMOTE_PREVIOUS = "demote_previous"
    BACKEND = "backend"


class BackendSettings(BaseSettings):
    """Application backend (session-token authenticated) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MUSEICK_BACKEND_", env_file=".env", extra="ignore"
    )

    base_url: str = Field(
        default="http://127.0.0.1:8080/api", description="Backend API base URL"
    )
    # Hey future me - without a timeout a hung backend hangs the UI forever. 10s is
    # generous for our backend; Spotify-backed routes sync metadata server-side.
    request_timeout: float = Field(
        default=10.0, gt=0, description="Per-request timeout in seconds"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SpotifySettings(BaseSettings):
    """Spotify (catalog) configuration."""

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_", env_file=".env", extra="ignore")

    client_id: str = Field(default="", description="Spotify OAuth client ID")
    redirect_uri: str = Field(default="", description="OAuth redirect URI")
    api_base_url: str = Field(default="https://api.spotify.com/v1")
    authorize_url: str = Field(default="https://accounts.spotify.com/authorize")
    scopes: str = Field(
        default=(
            "user-read-private user-read-email user-top-read "
            "playlist-modify-public playlist-modify-private ugc-image-upload"
        ),
        description="Space-separated OAuth scopes",
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SearchSettings(BaseSettings):
    """Debounced catalog search configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MUSEICK_SEARCH_", env_file=".env", extra="ignore"
    )

    debounce_seconds: float = Field(default=0.5, ge=0)
    min_query_length: int = Field(default=3, ge=1)
    result_limit: int = Field(default=20, ge=1, le=50)


class SelectionSettings(BaseSettings):
    """Selection lifecycle configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MUSEICK_SELECTION_", env_file=".env", extra="ignore"
    )

    promotion_policy: PromotionPolicy = PromotionPolicy.DEMOTE_PREVIOUS


class CredentialSettings(BaseSettings):
    """Where the catalog access token is persisted."""

    model_config = SettingsConfigDict(
        env_prefix="MUSEICK_CREDENTIALS_", env_file=".env", extra="ignore"
    )

    token_path: Path = Field(default=Path("~/.museick/credentials.json"))

    @field_validator("token_path")
    @classmethod
    def expand_user(cls, value: Path) -> Path:
        return value.expanduser()


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="MUSEICK_LOG_", env_file=".env", extra="ignore")

    level: str = Field(default="INFO")
    json_format: bool = Field(default=False)


class Settings(BaseSettings):
    """Top-level settings grouping every section."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "museick"
    backend: BackendSettings = Field(default_factory=BackendSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance. Call get_settings.cache_clear() in tests."""
    return Settings()
