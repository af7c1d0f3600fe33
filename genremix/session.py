"""
Narrow read/write handle over a per-browser session record.

The backing store is whatever mapping the transport provides (Flask's
``session`` in the app, a plain dict in tests). Only the fields below are
touched.
"""

ACCESS_TOKEN = 'access_token'
REFRESH_TOKEN = 'refresh_token'
EXPIRES_AT = 'expires_at'
OAUTH_STATE = 'oauth_state'
RETURN_TO = 'return_to'
ME_CACHE = 'me_cache'

FIELDS = (ACCESS_TOKEN, REFRESH_TOKEN, EXPIRES_AT, OAUTH_STATE, RETURN_TO, ME_CACHE)


class SpotifySession:
    def __init__(self, store):
        self._store = store

    def _get(self, key):
        return self._store.get(key)

    def _set(self, key, value):
        if value is None:
            self._store.pop(key, None)
        else:
            self._store[key] = value

    @property
    def access_token(self):
        return self._get(ACCESS_TOKEN)

    @access_token.setter
    def access_token(self, value):
        self._set(ACCESS_TOKEN, value)

    @property
    def refresh_token(self):
        return self._get(REFRESH_TOKEN)

    @refresh_token.setter
    def refresh_token(self, value):
        self._set(REFRESH_TOKEN, value)

    @property
    def expires_at(self):
        """Absolute expiry of the access token, epoch seconds, or None."""
        value = self._get(EXPIRES_AT)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @expires_at.setter
    def expires_at(self, value):
        self._set(EXPIRES_AT, value)

    @property
    def oauth_state(self):
        return self._get(OAUTH_STATE)

    @oauth_state.setter
    def oauth_state(self, value):
        self._set(OAUTH_STATE, value)

    @property
    def return_to(self):
        return self._get(RETURN_TO)

    @return_to.setter
    def return_to(self, value):
        self._set(RETURN_TO, value)

    @property
    def me_cache(self):
        return self._get(ME_CACHE)

    @me_cache.setter
    def me_cache(self, value):
        self._set(ME_CACHE, value)

    def pop_oauth_state(self):
        """Remove and return the handshake nonce (single use)."""
        return self._store.pop(OAUTH_STATE, None)

    def pop_return_to(self):
        return self._store.pop(RETURN_TO, None)

    def clear(self):
        """Forget every field this handle owns."""
        for key in FIELDS:
            self._store.pop(key, None)
