"""
Session-scoped Spotify token lifecycle.

Handles the authorization-code handshake and keeps a live access token in the
session, refreshing it shortly before it expires.
"""

import logging
import secrets
import time

import requests
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .config_manager import SPOTIFY_SCOPES, get_config_value, require_config_value
from .exceptions import (
    GenreMixError,
    Unauthenticated,
    InvalidState,
    UpstreamAuthError,
)
from .spotify_client import SpotifyClient

log = logging.getLogger(__name__)

# Seconds shaved off expires_at so a token is never used right at its edge
EXPIRY_MARGIN = 15
DEFAULT_RETURN_TO = '/spotify.html'


def get_spotify_oauth():
    """Create a SpotifyOAuth instance from configuration.

    Tokens live in the browser session, so spotipy gets a throwaway in-memory
    cache instead of its default cache file.
    """
    return SpotifyOAuth(
        client_id=require_config_value('spotify_client_id'),
        client_secret=require_config_value('spotify_client_secret'),
        redirect_uri=get_config_value('spotify_redirect_uri'),
        scope=SPOTIFY_SCOPES,
        cache_handler=MemoryCacheHandler(),
        open_browser=False,
    )


def default_client_factory(access_token):
    return SpotifyClient(
        access_token,
        market=get_config_value('default_market'),
        requests_timeout=float(get_config_value('spotify_requests_timeout')),
    )


class TokenManager:
    """Guarantees a usable access token for a session.

    States, as seen from the session record: no tokens (unauthenticated),
    ``oauth_state`` set (authorization pending), tokens present
    (authenticated). Refreshing rewrites the token fields in place.
    """

    def __init__(self, oauth_factory=get_spotify_oauth,
                 client_factory=default_client_factory, clock=time.time):
        self.oauth_factory = oauth_factory
        self.client_factory = client_factory
        self.clock = clock

    # ─── Handshake ────────────────────────────────────────────────────────

    def begin_authorization(self, session, return_to):
        """Issue a fresh nonce and return the Spotify authorization URL."""
        state = secrets.token_hex(16)
        session.oauth_state = state
        session.return_to = return_to
        return self.oauth_factory().get_authorize_url(state=state)

    def complete_authorization(self, session, code, state):
        """Finish the handshake and return where the browser should go next.

        The stored nonce is consumed before anything else, whether or not the
        exchange succeeds.
        """
        expected = session.pop_oauth_state()
        if not expected or expected != state:
            raise InvalidState()
        if not code:
            raise UpstreamAuthError('Missing authorization code')

        try:
            token_info = self.oauth_factory().get_access_token(
                code, as_dict=True, check_cache=False)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            log.error(f'Token exchange failed: {e}')
            raise UpstreamAuthError(f'Token exchange failed: {e}') from e

        if not isinstance(token_info, dict) or not token_info.get('refresh_token'):
            raise UpstreamAuthError('No refresh token returned from Spotify')
        access_token = self._store_tokens(session, token_info)

        # Cache /me; a failure here does not undo the login
        try:
            profile = self.client_factory(access_token).current_user()
            session.me_cache = profile.raw
        except GenreMixError as e:
            log.warning(f'Could not cache user profile after login: {e}')

        return session.pop_return_to() or DEFAULT_RETURN_TO

    # ─── Token upkeep ─────────────────────────────────────────────────────

    def has_fresh_token(self, session):
        expires_at = session.expires_at
        return bool(session.access_token) and expires_at is not None \
            and self.clock() < expires_at - EXPIRY_MARGIN

    def ensure_valid_token(self, session):
        """Return a live access token, refreshing it first if needed."""
        if self.has_fresh_token(session):
            return session.access_token

        refresh_token = session.refresh_token
        if not refresh_token:
            raise Unauthenticated()

        log.info('Access token expired or missing, refreshing')
        try:
            token_info = self.oauth_factory().refresh_access_token(refresh_token)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            # Token fields stay as they were so a later retry is possible
            log.warning(f'Token refresh rejected: {e}')
            raise UpstreamAuthError('Refresh failed') from e
        return self._store_tokens(session, token_info)

    def client_for(self, session):
        """Spotify client bound to the session's (refreshed) access token."""
        return self.client_factory(self.ensure_valid_token(session))

    def logout(self, session):
        session.clear()

    def _store_tokens(self, session, token_info):
        if not isinstance(token_info, dict) or not token_info.get('access_token'):
            raise UpstreamAuthError('No access token returned from Spotify')
        try:
            expires_in = int(token_info.get('expires_in', 3600))
        except (TypeError, ValueError):
            raise UpstreamAuthError('Malformed expires_in from Spotify')

        access_token = token_info['access_token']
        session.access_token = access_token
        session.expires_at = self.clock() + expires_in
        # Spotify may rotate refresh tokens; keep the newest one
        if token_info.get('refresh_token'):
            session.refresh_token = token_info['refresh_token']
        return access_token
