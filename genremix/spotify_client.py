"""
Spotify API client wrapper.
Issues the Web API calls the service needs and decodes each payload once into
plain typed values. spotipy and transport failures are translated into the
GenreMix exception taxonomy here and nowhere else.
"""

import logging

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from .exceptions import MalformedUpstreamResponse, UpstreamRequestError
from .models import UserProfile

log = logging.getLogger(__name__)

# Spotify accepts at most 100 URIs per add-items call
MAX_TRACKS_PER_CALL = 100
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 300


def _require_dict(payload, endpoint):
    if not isinstance(payload, dict):
        raise MalformedUpstreamResponse(endpoint, f'expected object, got {type(payload).__name__}')
    return payload


def _require_list(value, endpoint, key):
    if not isinstance(value, list):
        raise MalformedUpstreamResponse(endpoint, f'missing "{key}" array')
    return value


def _search_items(payload, container, endpoint):
    """Pull ``payload[container]['items']`` out of a search response."""
    section = _require_dict(payload, endpoint).get(container)
    if not isinstance(section, dict):
        raise MalformedUpstreamResponse(endpoint, f'missing "{container}" object')
    return _require_list(section.get('items'), endpoint, f'{container}.items')


def _ids(items):
    """Ids of well-formed items; Spotify pads search results with nulls."""
    return [
        item['id'] for item in items
        if isinstance(item, dict) and isinstance(item.get('id'), str) and item['id']
    ]


def _upstream_message(error):
    """The message Spotify sent, without the request URL spotipy prefixes."""
    return str(error.msg).split(':\n ', 1)[-1]


def _uris(tracks):
    return [
        t['uri'] for t in tracks
        if isinstance(t, dict) and isinstance(t.get('uri'), str) and t['uri'].strip()
    ]


class SpotifyClient:
    def __init__(self, access_token, market='US', requests_timeout=5):
        # Market used when the caller does not pass one (user's country wins)
        self.market = market
        # Status retries are off so a 429 on any call surfaces to the caller
        # immediately instead of blocking inside spotipy.
        self.sp = spotipy.Spotify(
            auth=access_token,
            requests_timeout=requests_timeout,
            retries=0,
            status_retries=0,
        )

    def _call(self, endpoint, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SpotifyException as e:
            message = _upstream_message(e)
            log.warning(f'[Spotify] {endpoint} failed: {e.http_status} {message}')
            raise UpstreamRequestError(e.http_status, message, endpoint) from e
        except requests.exceptions.RequestException as e:
            log.warning(f'[Spotify] {endpoint} transport error: {e}')
            raise UpstreamRequestError(None, str(e), endpoint) from e

    # ─── Identity & vocabulary ────────────────────────────────────────────

    def current_user(self):
        """Fetch the authenticated user's profile."""
        log.info('[Spotify] GET /v1/me')
        payload = _require_dict(self._call('me', self.sp.me), 'me')
        if not isinstance(payload.get('id'), str) or not payload['id']:
            raise MalformedUpstreamResponse('me', 'missing "id"')
        return UserProfile.from_payload(payload)

    def genre_seeds(self):
        """Fetch the upstream genre-tag vocabulary."""
        log.info('[Spotify] GET /v1/recommendations/available-genre-seeds')
        payload = _require_dict(
            self._call('genre seeds', self.sp.recommendation_genre_seeds), 'genre seeds')
        genres = _require_list(payload.get('genres'), 'genre seeds', 'genres')
        return [g for g in genres if isinstance(g, str) and g.strip()]

    # ─── Track sources ────────────────────────────────────────────────────

    def recommendations(self, genre, limit):
        """Track URIs recommended for a single seed genre."""
        log.info(f'[Spotify] GET /v1/recommendations seed_genres={genre} limit={limit}')
        payload = _require_dict(
            self._call('recommendations', self.sp.recommendations,
                       seed_genres=[genre], limit=limit, country='from_token'),
            'recommendations')
        tracks = _require_list(payload.get('tracks'), 'recommendations', 'tracks')
        return _uris(tracks)[:limit]

    def search_artists(self, genre, market=None, limit=50):
        """Ids of artists tagged with a genre."""
        query = f'genre:"{genre}"'
        market = market or self.market
        log.info(f'[Spotify] GET /v1/search q={query} type=artist market={market} limit={limit}')
        payload = self._call('artist search', self.sp.search,
                             q=query, type='artist', market=market, limit=limit)
        return _ids(_search_items(payload, 'artists', 'artist search'))

    def artist_top_tracks(self, artist_id, market=None):
        """Top track URIs of one artist in a market."""
        market = market or self.market
        log.info(f'[Spotify] GET /v1/artists/{artist_id}/top-tracks market={market}')
        payload = _require_dict(
            self._call('top tracks', self.sp.artist_top_tracks, artist_id, country=market),
            'top tracks')
        return _uris(_require_list(payload.get('tracks'), 'top tracks', 'tracks'))

    def search_playlists(self, query, market=None, limit=10):
        """Ids of public playlists whose text matches the query."""
        market = market or self.market
        log.info(f'[Spotify] GET /v1/search q={query} type=playlist market={market} limit={limit}')
        payload = self._call('playlist search', self.sp.search,
                             q=query, type='playlist', market=market, limit=limit)
        return _ids(_search_items(payload, 'playlists', 'playlist search'))

    def playlist_track_uris(self, playlist_id, limit=MAX_TRACKS_PER_CALL):
        """Track URIs listed in a playlist (first page only)."""
        log.info(f'[Spotify] GET /v1/playlists/{playlist_id}/tracks limit={limit}')
        payload = _require_dict(
            self._call('playlist tracks', self.sp.playlist_items, playlist_id,
                       fields='items(track(uri))', limit=limit,
                       additional_types=('track',)),
            'playlist tracks')
        items = _require_list(payload.get('items'), 'playlist tracks', 'items')
        return _uris(item.get('track') for item in items if isinstance(item, dict))

    # ─── Playlist writes ──────────────────────────────────────────────────

    def create_playlist(self, user_id, name, description='', public=False):
        """Create a playlist owned by ``user_id`` and return the upstream object."""
        # Spotify enforces limits: name ≤ 100 chars, description ≤ 300 chars
        safe_name = (name or 'GenreMix Playlist').strip()[:MAX_NAME_LENGTH]
        safe_desc = (description or '').strip()[:MAX_DESCRIPTION_LENGTH]
        log.info(f'[Spotify] POST /v1/users/{user_id}/playlists name={safe_name!r}')
        payload = _require_dict(
            self._call('create playlist', self.sp.user_playlist_create,
                       user_id, safe_name, public=public, description=safe_desc),
            'create playlist')
        if not isinstance(payload.get('id'), str) or not payload['id']:
            raise MalformedUpstreamResponse('create playlist', 'missing "id"')
        return payload

    def add_tracks(self, playlist_id, track_uris):
        """Attach up to 100 track URIs to a playlist in a single call."""
        uris = [u for u in track_uris if u][:MAX_TRACKS_PER_CALL]
        log.info(f'[Spotify] POST /v1/playlists/{playlist_id}/tracks count={len(uris)}')
        return self._call('add tracks', self.sp.playlist_add_items, playlist_id, uris)
