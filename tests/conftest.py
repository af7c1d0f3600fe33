"""
Shared fixtures for the GenreMix test suite.

The Spotify boundary is a ``MagicMock(spec=SpotifyClient)`` and the OAuth
manager a plain mock, so no test makes a network call.
"""

import pytest

from genremix.auth import TokenManager
from genremix.models import UserProfile
from genremix.session import SpotifySession
from genremix.spotify_client import SpotifyClient


class FakeClock:
    """Settable stand-in for time.time."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class IdentityRandom:
    """Keeps candidate order so sampling is predictable; records each shuffle."""

    def __init__(self):
        self.calls = []

    def shuffle(self, items):
        self.calls.append(list(items))


class ReversingRandom(IdentityRandom):
    def shuffle(self, items):
        super().shuffle(items)
        items.reverse()


def uris(prefix, n):
    return [f'spotify:track:{prefix}{i}' for i in range(n)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return {}


@pytest.fixture
def sess(store):
    return SpotifySession(store)


@pytest.fixture
def spotify(mocker):
    client = mocker.MagicMock(spec=SpotifyClient)
    client.market = 'US'
    client.current_user.return_value = UserProfile.from_payload(
        {'id': 'user-1', 'country': 'SE', 'display_name': 'Test User'})
    client.create_playlist.return_value = {'id': 'pl-1', 'name': 'Test'}
    return client


@pytest.fixture
def oauth(mocker):
    return mocker.MagicMock()


@pytest.fixture
def oauth_factory(mocker, oauth):
    return mocker.MagicMock(return_value=oauth)


@pytest.fixture
def tokens(oauth_factory, spotify, clock):
    return TokenManager(
        oauth_factory=oauth_factory,
        client_factory=lambda access_token: spotify,
        clock=clock,
    )


@pytest.fixture
def logged_in(sess, clock):
    """A session holding a token that is good for another hour."""
    sess.access_token = 'access-1'
    sess.refresh_token = 'refresh-1'
    sess.expires_at = clock.now + 3600
    return sess
