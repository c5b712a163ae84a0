import os
from dataclasses import dataclass, field

# Default lifetimes in seconds for each cached resource kind
DEFAULT_TTLS = {
    'teams': 24 * 60 * 60,
    'games': 5 * 60,
    'schedule': 5 * 60,
    'game': 5 * 60,
    'standings': 60 * 60,
    'leaders': 60 * 60,
    'search': 60 * 60,
    'scores': 5 * 60,
}


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class Settings:
    """Runtime configuration, normally read from the environment."""
    secret_key: str = ''
    port: int = 5000
    env: str = 'development'
    client_build_dir: str = 'client/build'
    mlb_api_base: str = 'https://statsapi.mlb.com/api'
    sportsdb_api_base: str = 'https://www.thesportsdb.com/api/v1/json'
    sportsdb_api_key: str = '3'
    upstream_timeout: int = 10
    cache_max_entries: int = 500
    cache_ttls: dict = field(default_factory=lambda: dict(DEFAULT_TTLS))
    ratelimit_default: str = '200 per day;50 per hour'
    ratelimit_storage_uri: str = 'memory://'
    ratelimit_enabled: bool = True
    log_level: str = 'INFO'
    scores_max_workers: int = 8
    secure_cookies: bool = True

    @property
    def production(self):
        return self.env == 'production'

    @classmethod
    def from_env(cls):
        ttls = dict(DEFAULT_TTLS)
        for kind in ttls:
            ttls[kind] = _env_int(f"CACHE_TTL_{kind.upper()}", ttls[kind])

        return cls(
            # Security: use environment variable in production
            secret_key=os.environ.get('SECRET_KEY') or os.urandom(32).hex(),
            port=_env_int('PORT', 5000),
            env=os.environ.get('DIAMONDBOARD_ENV', 'development').lower(),
            client_build_dir=os.environ.get('DIAMONDBOARD_CLIENT_BUILD', 'client/build'),
            mlb_api_base=os.environ.get('MLB_API_BASE', 'https://statsapi.mlb.com/api'),
            sportsdb_api_base=os.environ.get('SPORTSDB_API_BASE', 'https://www.thesportsdb.com/api/v1/json'),
            sportsdb_api_key=os.environ.get('SPORTSDB_API_KEY', '3'),
            upstream_timeout=_env_int('UPSTREAM_TIMEOUT', 10),
            cache_max_entries=_env_int('CACHE_MAX_ENTRIES', 500),
            cache_ttls=ttls,
            ratelimit_default=os.environ.get('RATELIMIT_DEFAULT', '200 per day;50 per hour'),
            ratelimit_storage_uri=os.environ.get('RATELIMIT_STORAGE_URI', 'memory://'),
            ratelimit_enabled=_env_bool('RATELIMIT_ENABLED', True),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            scores_max_workers=_env_int('SCORES_MAX_WORKERS', 8),
            secure_cookies=_env_bool('SECURE_COOKIES', True),
        )
