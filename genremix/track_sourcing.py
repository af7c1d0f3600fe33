"""
Track sourcing for genre playlists.

Pipeline (strictly in order, stopping as soon as the target is reached):
1. Spotify recommendations seeded with the genre
2. Artist search by genre -> random sample of artists -> their top tracks
3. Playlist search by genre -> track listings of the first few playlists

Any tier failing just hands over to the next one. Only an empty result after
all three tiers is an error; a short result is returned as-is.
"""

import logging
import secrets

from .exceptions import MalformedUpstreamResponse, NoTracksFound, UpstreamRequestError

log = logging.getLogger(__name__)

MAX_TRACKS = 100
DEFAULT_TRACK_COUNT = 25
ARTIST_SEARCH_LIMIT = 50
MIN_ARTIST_SAMPLE = 5
MAX_ARTIST_SAMPLE = 15
PLAYLIST_SEARCH_LIMIT = 10
PLAYLISTS_TO_MINE = 5

# Per-item failures inside a fallback loop are skipped, never fatal
SKIPPABLE = (UpstreamRequestError, MalformedUpstreamResponse)


def clamp_count(count):
    """Bound a requested track count to [1, 100]."""
    try:
        count = int(count)
    except (TypeError, ValueError):
        count = DEFAULT_TRACK_COUNT
    return max(1, min(MAX_TRACKS, count))


def artist_sample_size(count, available):
    """How many artists to pull top tracks from: 5 to 15, about count/2."""
    return min(available, max(MIN_ARTIST_SAMPLE, min(MAX_ARTIST_SAMPLE, count // 2)))


class SystemRandomSource:
    """Shuffles with the operating system's CSPRNG."""

    def __init__(self):
        self._rng = secrets.SystemRandom()

    def shuffle(self, items):
        self._rng.shuffle(items)


class TrackCollector:
    """Ordered working set of track URIs, unique ignoring case, capped at a target."""

    def __init__(self, target):
        self.target = target
        self.uris = []
        self._seen = set()

    def __len__(self):
        return len(self.uris)

    @property
    def full(self):
        return len(self.uris) >= self.target

    def add(self, uri):
        """Add one URI; returns False for blanks, duplicates, or when full."""
        if self.full or not uri or not uri.strip():
            return False
        key = uri.lower()
        if key in self._seen:
            return False
        self._seen.add(key)
        self.uris.append(uri)
        return True

    def add_all(self, uris):
        """Add URIs in order until the target is met; returns ``self.full``."""
        for uri in uris:
            if self.full:
                break
            self.add(uri)
        return self.full


class TrackSourcer:
    def __init__(self, client, rng=None):
        self.client = client
        self.rng = rng or SystemRandomSource()

    def source(self, genre, count, market=None):
        """Collect up to ``count`` unique track URIs for an already-normalized genre."""
        collector = TrackCollector(clamp_count(count))

        self._from_recommendations(genre, collector)
        if not collector.full:
            self._from_artist_top_tracks(genre, market, collector)
        if not collector.full:
            self._from_playlists(genre, market, collector)

        if not collector:
            log.warning(f'No tracks found for genre {genre!r}')
            raise NoTracksFound(genre)
        if not collector.full:
            log.info(f'Sourced {len(collector)}/{collector.target} tracks for {genre!r}')
        return collector.uris

    # ─── Tiers ────────────────────────────────────────────────────────────

    def _from_recommendations(self, genre, collector):
        try:
            uris = self.client.recommendations(genre, collector.target)
        except UpstreamRequestError as e:
            if e.status == 429:
                log.warning('[Spotify] recommendations rate limited - falling back to artist search')
            else:
                log.info(f'[Spotify] recommendations status {e.status} - falling back to artist search')
            return
        except MalformedUpstreamResponse as e:
            log.warning(f'[Spotify] {e} - falling back to artist search')
            return
        collector.add_all(uris)
        if not collector.full:
            log.info(f'[Spotify] recommendations returned {len(collector)}/{collector.target} - topping up')

    def _from_artist_top_tracks(self, genre, market, collector):
        try:
            artist_ids = self.client.search_artists(genre, market, limit=ARTIST_SEARCH_LIMIT)
        except SKIPPABLE as e:
            log.warning(f'[Spotify] Artist search failed: {e}')
            return
        if not artist_ids:
            log.info(f'[Spotify] No artists tagged {genre!r}')
            return

        candidates = list(artist_ids)
        self.rng.shuffle(candidates)
        sample = candidates[:artist_sample_size(collector.target, len(candidates))]

        for artist_id in sample:
            try:
                uris = self.client.artist_top_tracks(artist_id, market)
            except SKIPPABLE as e:
                log.warning(f'[Spotify] Skipping artist {artist_id}: {e}')
                continue
            if collector.add_all(uris):
                break

    def _from_playlists(self, genre, market, collector):
        log.info('[Spotify] artist fallback insufficient - trying playlist search')
        try:
            playlist_ids = self.client.search_playlists(genre, market, limit=PLAYLIST_SEARCH_LIMIT)
        except SKIPPABLE as e:
            log.warning(f'[Spotify] Playlist search failed: {e}')
            return

        for playlist_id in playlist_ids[:PLAYLISTS_TO_MINE]:
            try:
                uris = self.client.playlist_track_uris(playlist_id)
            except SKIPPABLE as e:
                log.warning(f'[Spotify] Skipping playlist {playlist_id}: {e}')
                continue
            if collector.add_all(uris):
                break
