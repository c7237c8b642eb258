import os
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuration error."""
    pass


SPOTIFY_SCOPES = [
    'playlist-modify-public',     # Create/modify public playlists
    'playlist-modify-private',    # Create/modify private playlists
    'user-read-private',          # Read the profile that will own new playlists
    'user-read-email',            # Email is returned with the login callback
]

MAX_SEARCH_LIMIT = 50


def get_spotify_scopes() -> List[str]:
    """Get the Spotify OAuth scopes the converter requests."""
    return list(SPOTIFY_SCOPES)


def get_spotify_scope_string() -> str:
    """Get Spotify scopes as space-separated string."""
    return ' '.join(SPOTIFY_SCOPES)


def _get_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_int(name: str, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    raw = _get_str(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"{name} must be <= {maximum}, got {value}")
    return value


@dataclass(frozen=True)
class AppConfig:
    """Settings for the converter, read from the environment."""

    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_redirect_uri: Optional[str] = None
    youtube_api_key: Optional[str] = None
    frontend_url: str = 'http://localhost:3000'
    port: int = 4000
    market: str = 'US'
    search_limit: int = MAX_SEARCH_LIMIT
    pace_ms: int = 100
    batch_retries: int = 0
    log_level: str = 'INFO'
    log_format: str = 'json'

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from current environment variables.

        Raises:
            ConfigError: If a numeric or enumerated setting is invalid
        """
        log_format = (_get_str('LOG_FORMAT', 'json') or 'json').lower()
        if log_format not in ('json', 'text'):
            raise ConfigError(f"LOG_FORMAT must be 'json' or 'text', got {log_format!r}")

        return cls(
            spotify_client_id=_get_str('SPOTIFY_CLIENT_ID'),
            spotify_client_secret=_get_str('SPOTIFY_CLIENT_SECRET'),
            spotify_redirect_uri=_get_str('SPOTIFY_REDIRECT_URI'),
            youtube_api_key=_get_str('YOUTUBE_API_KEY'),
            frontend_url=_get_str('FRONTEND_URL', 'http://localhost:3000').rstrip('/'),
            port=_get_int('PORT', 4000, minimum=1, maximum=65535),
            market=_get_str('CONVERTER_MARKET', 'US'),
            search_limit=_get_int('CONVERTER_SEARCH_LIMIT', MAX_SEARCH_LIMIT, minimum=1, maximum=MAX_SEARCH_LIMIT),
            pace_ms=_get_int('CONVERTER_PACE_MS', 100, minimum=0),
            batch_retries=_get_int('CONVERTER_BATCH_RETRIES', 0, minimum=0),
            log_level=_get_str('LOG_LEVEL', 'INFO').upper(),
            log_format=log_format,
        )

    @property
    def pace_interval_sec(self) -> float:
        return self.pace_ms / 1000.0

    @property
    def json_logs(self) -> bool:
        return self.log_format == 'json'

    def validate(self) -> Dict[str, bool]:
        """Report which required settings are present."""
        return {
            'spotify_client_id': bool(self.spotify_client_id),
            'spotify_client_secret': bool(self.spotify_client_secret),
            'spotify_redirect_uri': bool(self.spotify_redirect_uri),
            'youtube_api_key': bool(self.youtube_api_key),
        }

    def missing(self) -> List[str]:
        return [key.upper() for key, present in self.validate().items() if not present]

    def missing_spotify(self) -> List[str]:
        return [k for k in self.missing() if k.startswith('SPOTIFY_')]

    def require_spotify(self) -> None:
        """Raise ConfigError naming any missing Spotify OAuth setting."""
        missing = self.missing_spotify()
        if missing:
            raise ConfigError(f"Missing Spotify configuration: {', '.join(missing)}")

    def require_youtube(self) -> None:
        """Raise ConfigError if the YouTube API key is missing."""
        if not self.youtube_api_key:
            raise ConfigError("Missing YouTube configuration: YOUTUBE_API_KEY")

    def summary(self) -> Dict[str, Any]:
        """Configuration summary without secret values."""
        return {
            'validation': self.validate(),
            'frontend_url': self.frontend_url,
            'port': self.port,
            'market': self.market,
            'search_limit': self.search_limit,
            'pace_ms': self.pace_ms,
            'batch_retries': self.batch_retries,
            'spotify_scopes': get_spotify_scopes(),
        }


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """Load a .env file (if present) into the environment and build the configuration.

    Variables already set in the environment take precedence over the file.
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)
    return AppConfig.from_env()
