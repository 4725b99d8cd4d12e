import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

__version__ = "0.1.0"


class ConfigError(Exception):
    """Configuration error."""
    pass


ENV_PREFIX = 'SPOTIFY2JSPF_'

DEFAULT_USER_AGENT = f"spotify2jspf/{__version__} ( https://github.com/spotify2jspf/spotify2jspf )"


@dataclass(frozen=True)
class ConverterConfig:
    """Settings for talking to MusicBrainz."""

    mb_base_url: str = "https://musicbrainz.org/ws/2"
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 10.0
    max_attempts: int = 5
    retry_delay: float = 0.0
    # MusicBrainz allows one request per second per client
    request_interval: float = 1.0
    search_limit: int = 25

    def summary(self) -> Dict[str, Any]:
        """Settings as a plain dict for logging."""
        return {
            'mb_base_url': self.mb_base_url,
            'user_agent': self.user_agent,
            'timeout': self.timeout,
            'max_attempts': self.max_attempts,
            'retry_delay': self.retry_delay,
            'request_interval': self.request_interval,
            'search_limit': self.search_limit,
        }


def _get(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + key)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _get_float(env: Mapping[str, str], key: str, default: float, minimum: float = 0.0) -> float:
    value = _get(env, key)
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{key} must be a number, got {value!r}")
    if number < minimum:
        raise ConfigError(f"{ENV_PREFIX}{key} must be >= {minimum}, got {value!r}")
    return number


def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 1) -> int:
    value = _get(env, key)
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{key} must be an integer, got {value!r}")
    if number < minimum:
        raise ConfigError(f"{ENV_PREFIX}{key} must be >= {minimum}, got {value!r}")
    return number


def load_config(env: Optional[Mapping[str, str]] = None) -> ConverterConfig:
    """Build the configuration from environment variables.

    Args:
        env: Mapping to read from, os.environ by default

    Raises:
        ConfigError: If a variable holds an invalid value
    """
    env = os.environ if env is None else env
    defaults = ConverterConfig()

    search_limit = _get_int(env, 'SEARCH_LIMIT', defaults.search_limit)
    if search_limit > 100:
        # Hard limit of the MusicBrainz search API
        raise ConfigError(f"{ENV_PREFIX}SEARCH_LIMIT must be <= 100, got {search_limit}")

    return ConverterConfig(
        mb_base_url=(_get(env, 'MB_BASE_URL') or defaults.mb_base_url).rstrip('/'),
        user_agent=_get(env, 'USER_AGENT') or defaults.user_agent,
        timeout=_get_float(env, 'TIMEOUT', defaults.timeout, minimum=0.1),
        max_attempts=_get_int(env, 'MAX_ATTEMPTS', defaults.max_attempts),
        retry_delay=_get_float(env, 'RETRY_DELAY', defaults.retry_delay),
        request_interval=_get_float(env, 'REQUEST_INTERVAL', defaults.request_interval),
        search_limit=search_limit,
    )
