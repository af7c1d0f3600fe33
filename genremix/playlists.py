"""
Playlist creation: random-by-genre and manual playlists.
"""

import logging
import re
from datetime import datetime

from .exceptions import UpstreamRequestError
from .genres import normalize_genre
from .models import CommitResult, UserProfile
from .spotify_client import MAX_TRACKS_PER_CALL
from .track_sourcing import TrackSourcer

log = logging.getLogger(__name__)

TRACK_URI_PREFIX = 'spotify:track:'


def to_track_uri(reference):
    """Turn an ``open.spotify.com/track/<id>`` link into a track URI.

    Anything else (URIs included) is returned trimmed and otherwise untouched.
    """
    s = reference.strip()
    if s.startswith(TRACK_URI_PREFIX):
        return s
    idx = s.lower().find('/track/')
    if idx >= 0:
        track_id = re.split(r'[?#/]', s[idx + len('/track/'):])[0]
        return f'{TRACK_URI_PREFIX}{track_id}'
    return s


class PlaylistCommitter:
    """Creates a playlist and attaches tracks to it.

    Creation failures propagate. An attach failure after a successful create
    is reported on the result instead, since the playlist already exists.
    """

    def __init__(self, client):
        self.client = client

    def commit(self, user_id, name, description, is_public, track_uris):
        uris = list(track_uris)[:MAX_TRACKS_PER_CALL]
        playlist = self.client.create_playlist(
            user_id, name, description, public=is_public)
        if not uris:
            return CommitResult(playlist)

        try:
            self.client.add_tracks(playlist['id'], uris)
        except UpstreamRequestError as e:
            log.warning(f'Playlist {playlist["id"]} created but adding tracks failed: {e}')
            return CommitResult(playlist, add_error=e.body)
        return CommitResult(playlist)


class PlaylistService:
    """Entry points used by the HTTP layer; every call takes the session handle."""

    def __init__(self, tokens, rng=None, clock=datetime.now):
        self.tokens = tokens
        self.rng = rng
        self.clock = clock

    def current_user(self, session, client=None):
        """The session user's profile, from ``me_cache`` when available."""
        client = client or self.tokens.client_for(session)
        cached = session.me_cache
        if isinstance(cached, dict) and cached.get('id'):
            return UserProfile.from_payload(cached)
        profile = client.current_user()
        session.me_cache = profile.raw
        return profile

    def create_random_playlist(self, session, genre, count=None, name=None,
                               description=None, is_public=False):
        genre = normalize_genre(genre)
        if not genre:
            raise ValueError('genre is required')

        client = self.tokens.client_for(session)
        profile = self.current_user(session, client)
        market = profile.country or client.market

        uris = TrackSourcer(client, self.rng).source(genre, count, market)
        log.info(f'Creating {genre!r} playlist with {len(uris)} tracks for {profile.id}')

        if not isinstance(name, str) or not name.strip():
            name = f'{genre} mix - {self.clock():%Y-%m-%d %H:%M}'
        if description is None:
            description = f'Random {genre} picks via GenreMix'
        return PlaylistCommitter(client).commit(
            profile.id, name, description, bool(is_public), uris)

    def create_manual_playlist(self, session, name=None, description=None,
                               is_public=False, uris=()):
        references = [
            to_track_uri(u) for u in (uris or ())
            if isinstance(u, str) and u.strip()
        ]

        client = self.tokens.client_for(session)
        profile = self.current_user(session, client)

        if not name:
            name = f'My Playlist {self.clock():%Y-%m-%d %H:%M:%S}'
        if description is None:
            description = 'Created by GenreMix'
        return PlaylistCommitter(client).commit(
            profile.id, name, description, bool(is_public), references)
