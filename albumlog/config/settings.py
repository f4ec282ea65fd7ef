"""Application settings loaded from environment variables via pydantic-settings.

Values are read from (highest priority first) environment variables and a
``.env`` file in the working directory.  Field ``redis_url`` maps to the
``REDIS_URL`` variable, and so on.  Defaults apply when neither source
provides a value.

Tuning knobs that rarely differ between deployments (cache TTLs, rate
limits, search limits) live in ``config/config.yaml`` instead; see
:mod:`albumlog.config.loader`.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """albumlog application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Key-Value Store ===
    redis_url: str = "redis://localhost:6379"
    # "memory" swaps in the in-process store for local development.
    kv_backend: Literal["redis", "memory"] = "redis"

    # === Music Databases ===
    musicbrainz_app_name: str = "AlbumADay"
    musicbrainz_app_version: str = "0.0.1"
    musicbrainz_contact: str = "https://github.com/pupperpowell/album-a-day"

    # === Artwork ===
    artwork_dir: str = "public/album-art"
    artwork_public_prefix: str = "/album-art"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def user_agent(self) -> str:
        """Return the client-identifier header MusicBrainz requires."""
        return (
            f"{self.musicbrainz_app_name}/{self.musicbrainz_app_version}"
            f" ( {self.musicbrainz_contact} )"
        )
