"""
Configuration manager for GenreMix.
Resolves settings from the environment first, then from a local config.json.
"""

import os
import json

from dotenv import load_dotenv

from .exceptions import ConfigurationError

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

load_dotenv(os.path.join(_PROJECT_ROOT, '.env'))


SPOTIFY_SCOPES = 'playlist-modify-public playlist-modify-private'

ENV_MAP = {
    'spotify_client_id': 'SPOTIFY_CLIENT_ID',
    'spotify_client_secret': 'SPOTIFY_CLIENT_SECRET',
    'spotify_redirect_uri': 'SPOTIFY_REDIRECT_URI',
    'spotify_requests_timeout': 'SPOTIFY_REQUESTS_TIMEOUT',
    'default_market': 'SPOTIFY_DEFAULT_MARKET',
    'app_secret_key': 'APP_SECRET_KEY',
    'score_db_path': 'SCORE_DB_PATH',
    'log_level': 'LOG_LEVEL',
}

DEFAULTS = {
    'spotify_redirect_uri': 'http://127.0.0.1:5173/callback',
    'spotify_requests_timeout': 5,
    'default_market': 'US',
    'log_level': 'INFO',
}

CONFIG_FILE = os.path.join(_PROJECT_ROOT, 'config.json')


def load_config():
    """Load configuration from config.json."""
    if os.path.exists(CONFIG_FILE):
        try:
            with open(CONFIG_FILE, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def is_configured():
    """Check if the Spotify client credentials are present."""
    return bool(get_config_value('spotify_client_id')
                and get_config_value('spotify_client_secret'))


def get_config_value(key, default=None):
    """Get a single config value."""
    env_key = ENV_MAP.get(key)
    if env_key and os.environ.get(env_key):
        return os.environ.get(env_key)
    if default is None:
        default = DEFAULTS.get(key)
    return load_config().get(key, default)


def require_config_value(key):
    """Get a config value that must be set, naming the variable when it is not."""
    value = get_config_value(key)
    if not value:
        raise ConfigurationError(
            f'Missing environment variable {ENV_MAP.get(key, key)}')
    return value
