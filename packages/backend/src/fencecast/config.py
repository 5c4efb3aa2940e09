"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with FENCECAST_ prefix.
Nothing is read from files at runtime except the place fixtures.

Learn: Every tunable the relay has lives here: Tile38 address, pool
sizing, fence distances, TTLs. Components never read this singleton
directly; create_app() hands a Settings instance to whatever needs it,
so tests can build an isolated app with their own values.
"""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings

# packages/backend/fences, independent of the working directory
DEFAULT_FENCES_DIR = Path(__file__).resolve().parents[2] / "fences"


class Settings(BaseSettings):
    """All app configuration. Set via FENCECAST_* env vars."""

    # Tile38 (speaks the Redis protocol)
    tile38_url: str = "redis://localhost:9851"
    pool_max_connections: int = 16
    idle_timeout: float = 240.0  # seconds before an idle connection is re-checked

    # Geofencing
    roam_distance: int = 100  # meters
    person_ttl: int = 5  # seconds a location survives without refresh
    places: list[str] = ["convention-center", "hyatt-regency"]
    fences_dir: str = str(DEFAULT_FENCES_DIR)

    # Relay
    reconnect_delay: float = 1.0  # seconds between subscription attempts
    send_queue_size: int = 256  # per-connection outbound buffer

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    static_dir: str = "web"

    model_config = {"env_prefix": "FENCECAST_"}

    @model_validator(mode="after")
    def validate_limits(self):
        """Reject values Tile38 or the pool would choke on."""
        for name in ("pool_max_connections", "roam_distance", "person_ttl", "send_queue_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"FENCECAST_{name.upper()} must be positive")
        if self.reconnect_delay < 0:
            raise ValueError("FENCECAST_RECONNECT_DELAY must not be negative")
        return self


# Singleton for the default app and the CLI
settings = Settings()
