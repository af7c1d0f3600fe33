"""
Genre handling: synonym normalization and the genre-tag vocabulary.
"""

import logging

from .exceptions import GenreMixError

log = logging.getLogger(__name__)

GENRE_SYNONYMS = {
    'hip hop': 'hip-hop',
    'hiphop': 'hip-hop',
    'rnb': 'r-n-b',
    'r&b': 'r-n-b',
    'r and b': 'r-n-b',
    'drum and bass': 'drum-and-bass',
    'alt rock': 'alt-rock',
}

# Snapshot of /v1/recommendations/available-genre-seeds, served when the
# endpoint is gone or the session is not logged in.
LOCAL_GENRE_SEEDS = (
    'acoustic', 'afrobeat', 'alt-rock', 'alternative', 'ambient', 'anime', 'black-metal',
    'bluegrass', 'blues', 'bossanova', 'brazil', 'breakbeat', 'british', 'cantopop',
    'chicago-house', 'children', 'chill', 'classical', 'club', 'comedy', 'country', 'dance',
    'dancehall', 'death-metal', 'deep-house', 'detroit-techno', 'disco', 'disney',
    'drum-and-bass', 'dub', 'dubstep', 'edm', 'electro', 'electronic', 'emo', 'folk', 'forro',
    'french', 'funk', 'garage', 'german', 'gospel', 'goth', 'groove', 'grunge', 'guitar',
    'happy', 'hard-rock', 'hardcore', 'hardstyle', 'heavy-metal', 'hip-hop', 'holidays',
    'honky-tonk', 'house', 'idm', 'indian', 'indie', 'indie-pop', 'industrial', 'iranian',
    'j-dance', 'j-idol', 'j-pop', 'j-rock', 'jazz', 'k-pop', 'kids', 'latin', 'latino', 'malay',
    'mandopop', 'metal', 'metalcore', 'minimal-techno', 'movies', 'mpb', 'new-age',
    'new-release', 'opera', 'pagode', 'party', 'philippines-opm', 'piano', 'pop', 'pop-film',
    'post-dubstep', 'power-pop', 'progressive-house', 'psych-rock', 'punk', 'punk-rock',
    'r-n-b', 'rainy-day', 'reggae', 'reggaeton', 'road-trip', 'rock', 'rock-n-roll',
    'rockabilly', 'romance', 'sad', 'salsa', 'samba', 'sertanejo', 'show-tunes',
    'singer-songwriter', 'ska', 'sleep', 'soul', 'soundtracks', 'spanish', 'study', 'summer',
    'swedish', 'synth-pop', 'tango', 'techno', 'trance', 'trip-hop', 'turkish', 'work-out',
    'world-music',
)


def normalize_genre(genre):
    """Map common spellings onto Spotify's genre tags.

    Unknown genres pass through trimmed and lower-cased; they are left to
    fail downstream rather than rejected here.
    """
    g = genre.strip().lower() if isinstance(genre, str) else ''
    return GENRE_SYNONYMS.get(g, g)


def available_genres(client):
    """Return ``(genres, source)`` where source is ``'spotify'`` or ``'local'``.

    ``client`` may be None when the session is not logged in.
    """
    if client is None:
        return list(LOCAL_GENRE_SEEDS), 'local'
    try:
        genres = client.genre_seeds()
    except GenreMixError as e:
        log.info(f'[Spotify] genre seeds unavailable ({e}) - using local fallback list')
        return list(LOCAL_GENRE_SEEDS), 'local'
    if not genres:
        return list(LOCAL_GENRE_SEEDS), 'local'
    return genres, 'spotify'
