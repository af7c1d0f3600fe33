"""GenreMix: Spotify genre playlists with a session-scoped token lifecycle."""

__version__ = '0.1.0'
