"""
GenreMix - Flask backend
Spotify login, genre playlists and a small score leaderboard.

The routes only translate HTTP to service calls. Token upkeep lives in
``auth.TokenManager``, track sourcing and playlist commits in
``playlists.PlaylistService``; both receive the session handle explicitly.
"""

import logging
import os
from datetime import datetime, timedelta, timezone

from flask import Flask, jsonify, redirect, request, session

from .auth import DEFAULT_RETURN_TO, TokenManager
from .config_manager import get_config_value, is_configured
from .exceptions import (
    ConfigurationError,
    InvalidState,
    MalformedUpstreamResponse,
    NoTracksFound,
    Unauthenticated,
    UpstreamAuthError,
    UpstreamRequestError,
)
from .genres import LOCAL_GENRE_SEEDS, available_genres
from .playlists import PlaylistService
from .scores import InMemoryScoreStore, SqliteScoreStore
from .session import SpotifySession

log = logging.getLogger(__name__)


def _default_score_store():
    db_path = get_config_value('score_db_path')
    if db_path:
        return SqliteScoreStore(db_path)
    return InMemoryScoreStore()


def _optional_str(data, key):
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f'{key} must be a string')
    return value


def create_app(tokens=None, playlists=None, scores=None):
    """Application factory; collaborators can be injected for tests."""
    level = str(get_config_value('log_level')).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))

    app = Flask(__name__, static_folder='static', static_url_path='')
    app.secret_key = get_config_value('app_secret_key') or os.urandom(24)
    app.config.update(
        SESSION_COOKIE_NAME='mg_sess',
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=timedelta(hours=8),
    )

    tokens = tokens or TokenManager()
    playlists = playlists or PlaylistService(tokens)
    scores = scores or _default_score_store()

    def current_session():
        session.permanent = True
        return SpotifySession(session)

    # ─── Error mapping ────────────────────────────────────────────────────

    @app.errorhandler(Unauthenticated)
    def handle_unauthenticated(e):
        return jsonify({'error': str(e), 'loggedIn': False}), 401

    @app.errorhandler(InvalidState)
    def handle_invalid_state(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(UpstreamAuthError)
    def handle_upstream_auth(e):
        log.error(f'Spotify auth error: {e}')
        return jsonify({'error': str(e)}), 502

    @app.errorhandler(UpstreamRequestError)
    def handle_upstream_request(e):
        status = e.status if isinstance(e.status, int) and e.status >= 400 else 502
        return jsonify({'error': {'status': e.status, 'message': e.body}}), status

    @app.errorhandler(MalformedUpstreamResponse)
    def handle_malformed(e):
        log.error(str(e))
        return jsonify({'error': str(e)}), 502

    @app.errorhandler(NoTracksFound)
    def handle_no_tracks(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(ConfigurationError)
    def handle_configuration(e):
        log.error(str(e))
        return jsonify({'error': str(e)}), 500

    # ─── Health ───────────────────────────────────────────────────────────

    @app.route('/health')
    def health():
        return jsonify({
            'ok': True,
            'configured': is_configured(),
            'serverTime': datetime.now(timezone.utc).isoformat(),
        })

    # ─── OAuth flow ───────────────────────────────────────────────────────

    @app.route('/login')
    def login():
        """Redirect to Spotify, remembering the host the user came in on."""
        if not is_configured():
            raise ConfigurationError(
                'Missing environment variables SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET')
        return_to = f'{request.scheme}://{request.host}{DEFAULT_RETURN_TO}'
        return redirect(tokens.begin_authorization(current_session(), return_to))

    @app.route('/callback')
    def callback():
        """Handle Spotify OAuth callback."""
        sess = current_session()
        error = request.args.get('error')
        if error:
            sess.pop_oauth_state()
            return jsonify({'error': f'Auth error: {error}'}), 400
        target = tokens.complete_authorization(
            sess, request.args.get('code', ''), request.args.get('state', ''))
        return redirect(target)

    @app.route('/logout', methods=['POST'])
    def logout():
        tokens.logout(current_session())
        return redirect(DEFAULT_RETURN_TO)

    # ─── Spotify API ──────────────────────────────────────────────────────

    @app.route('/api/me')
    def api_me():
        """Who am I; not-logged-in is a normal answer, not an error."""
        try:
            profile = playlists.current_user(current_session())
        except (Unauthenticated, UpstreamAuthError, UpstreamRequestError,
                MalformedUpstreamResponse) as e:
            log.info(f'/api/me: not logged in ({e})')
            return jsonify({'loggedIn': False})
        return jsonify({'loggedIn': True, 'me': profile.raw})

    @app.route('/api/genres')
    def api_genres():
        """Genre vocabulary, falling back to the local snapshot."""
        try:
            client = tokens.client_for(current_session())
        except (Unauthenticated, UpstreamAuthError, ConfigurationError):
            return jsonify({'genres': list(LOCAL_GENRE_SEEDS), 'from': 'local'})
        genres, source = available_genres(client)
        return jsonify({'genres': genres, 'from': source})

    @app.route('/api/create-random-playlist', methods=['POST'])
    def api_create_random_playlist():
        """Create a playlist of random tracks for a genre."""
        data = request.get_json(silent=True) or {}
        try:
            result = playlists.create_random_playlist(
                current_session(),
                _optional_str(data, 'genre'),
                count=data.get('count'),
                name=_optional_str(data, 'name'),
                description=_optional_str(data, 'description'),
                is_public=data.get('isPublic') is True,
            )
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
        return jsonify(result.to_dict())

    @app.route('/api/create-playlist', methods=['POST'])
    def api_create_playlist():
        """Create a playlist from a list of track URIs or links."""
        data = request.get_json(silent=True) or {}
        uris = data.get('uris')
        try:
            name = _optional_str(data, 'name')
            description = _optional_str(data, 'description')
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
        result = playlists.create_manual_playlist(
            current_session(),
            name=name,
            description=description,
            is_public=data.get('isPublic') is True,
            uris=uris if isinstance(uris, list) else [],
        )
        return jsonify(result.to_dict())

    # ─── Scores ───────────────────────────────────────────────────────────

    @app.route('/score', methods=['POST'])
    def add_score():
        data = request.get_json(silent=True) or {}
        try:
            score = scores.add(data.get('username'), data.get('value'))
        except (TypeError, ValueError) as e:
            return jsonify({'error': str(e)}), 400
        return jsonify(score.to_dict()), 201

    @app.route('/score/top')
    def top_scores():
        limit = request.args.get('limit', type=int)
        return jsonify([s.to_dict() for s in scores.top(limit)])

    return app
