"""Tests for the session-scoped token lifecycle."""

import re

import pytest
import requests
from spotipy.oauth2 import SpotifyOauthError

from genremix.auth import DEFAULT_RETURN_TO, EXPIRY_MARGIN, TokenManager
from genremix.exceptions import (
    InvalidState,
    Unauthenticated,
    UpstreamAuthError,
    UpstreamRequestError,
)


class TestEnsureValidToken:
    def test_fresh_token_makes_no_call(self, tokens, logged_in, oauth_factory):
        assert tokens.ensure_valid_token(logged_in) == 'access-1'
        oauth_factory.assert_not_called()

    def test_token_just_outside_margin_is_still_used(self, tokens, logged_in, clock, oauth_factory):
        logged_in.expires_at = clock.now + EXPIRY_MARGIN + 1
        assert tokens.ensure_valid_token(logged_in) == 'access-1'
        oauth_factory.assert_not_called()

    def test_token_inside_margin_is_refreshed(self, tokens, logged_in, clock, oauth):
        logged_in.expires_at = clock.now + 10
        oauth.refresh_access_token.return_value = {
            'access_token': 'access-2', 'expires_in': 3600, 'refresh_token': 'refresh-1'}

        assert tokens.ensure_valid_token(logged_in) == 'access-2'
        oauth.refresh_access_token.assert_called_once_with('refresh-1')
        assert logged_in.access_token == 'access-2'
        assert logged_in.expires_at == clock.now + 3600

    def test_missing_access_token_is_refreshed(self, tokens, sess, oauth):
        sess.refresh_token = 'refresh-1'
        oauth.refresh_access_token.return_value = {'access_token': 'access-2', 'expires_in': 60}

        assert tokens.ensure_valid_token(sess) == 'access-2'

    def test_rotated_refresh_token_overwrites_old(self, tokens, logged_in, clock, oauth):
        logged_in.expires_at = clock.now - 1
        oauth.refresh_access_token.return_value = {
            'access_token': 'access-2', 'expires_in': 3600, 'refresh_token': 'refresh-2'}

        tokens.ensure_valid_token(logged_in)

        assert logged_in.refresh_token == 'refresh-2'

    def test_refresh_without_rotation_keeps_old(self, tokens, logged_in, clock, oauth):
        logged_in.expires_at = clock.now - 1
        oauth.refresh_access_token.return_value = {'access_token': 'access-2', 'expires_in': 3600}

        tokens.ensure_valid_token(logged_in)

        assert logged_in.refresh_token == 'refresh-1'

    def test_no_refresh_token_is_unauthenticated(self, tokens, sess, oauth_factory):
        with pytest.raises(Unauthenticated):
            tokens.ensure_valid_token(sess)
        oauth_factory.assert_not_called()

    def test_rejected_refresh_leaves_fields_stale(self, tokens, logged_in, clock, oauth):
        logged_in.expires_at = clock.now - 1
        expired_at = logged_in.expires_at
        oauth.refresh_access_token.side_effect = SpotifyOauthError(
            'invalid_grant', error='invalid_grant', error_description='Refresh token revoked')

        with pytest.raises(UpstreamAuthError):
            tokens.ensure_valid_token(logged_in)

        assert logged_in.access_token == 'access-1'
        assert logged_in.refresh_token == 'refresh-1'
        assert logged_in.expires_at == expired_at

    def test_network_failure_on_refresh_leaves_fields_stale(self, tokens, logged_in, clock, oauth):
        logged_in.expires_at = clock.now - 1
        expired_at = logged_in.expires_at
        oauth.refresh_access_token.side_effect = requests.exceptions.ConnectionError('reset')

        with pytest.raises(UpstreamAuthError):
            tokens.ensure_valid_token(logged_in)

        assert logged_in.access_token == 'access-1'
        assert logged_in.refresh_token == 'refresh-1'
        assert logged_in.expires_at == expired_at

    def test_refresh_without_access_token_is_rejected(self, tokens, logged_in, clock, oauth):
        logged_in.expires_at = clock.now - 1
        oauth.refresh_access_token.return_value = {'error': 'nope'}

        with pytest.raises(UpstreamAuthError):
            tokens.ensure_valid_token(logged_in)

    def test_client_for_uses_refreshed_token(self, oauth_factory, oauth, logged_in, clock, mocker):
        logged_in.expires_at = clock.now - 1
        oauth.refresh_access_token.return_value = {'access_token': 'access-2', 'expires_in': 3600}
        client_factory = mocker.MagicMock()
        tokens = TokenManager(oauth_factory=oauth_factory, client_factory=client_factory, clock=clock)

        tokens.client_for(logged_in)

        client_factory.assert_called_once_with('access-2')


class TestBeginAuthorization:
    def test_stores_nonce_and_return_target(self, tokens, sess, oauth):
        oauth.get_authorize_url.return_value = 'https://accounts.spotify.com/authorize?x=1'

        url = tokens.begin_authorization(sess, 'http://localhost:8080/spotify.html')

        assert url == 'https://accounts.spotify.com/authorize?x=1'
        assert re.fullmatch(r'[0-9a-f]{32}', sess.oauth_state)
        assert sess.return_to == 'http://localhost:8080/spotify.html'
        oauth.get_authorize_url.assert_called_once_with(state=sess.oauth_state)

    def test_each_handshake_gets_a_new_nonce(self, tokens, sess):
        tokens.begin_authorization(sess, '/a')
        first = sess.oauth_state
        tokens.begin_authorization(sess, '/a')
        assert sess.oauth_state != first


class TestCompleteAuthorization:
    @pytest.fixture
    def pending(self, sess):
        sess.oauth_state = 'nonce'
        sess.return_to = 'http://localhost:8080/spotify.html'
        return sess

    @pytest.fixture
    def granted(self, oauth):
        oauth.get_access_token.return_value = {
            'access_token': 'access-1', 'refresh_token': 'refresh-1', 'expires_in': 3600}
        return oauth

    def test_success_populates_session(self, tokens, pending, granted, clock, spotify):
        target = tokens.complete_authorization(pending, 'code-1', 'nonce')

        assert target == 'http://localhost:8080/spotify.html'
        assert pending.access_token == 'access-1'
        assert pending.refresh_token == 'refresh-1'
        assert pending.expires_at == clock.now + 3600
        assert pending.me_cache['id'] == 'user-1'
        assert pending.oauth_state is None
        assert pending.return_to is None
        granted.get_access_token.assert_called_once_with('code-1', as_dict=True, check_cache=False)

    def test_default_destination_without_return_to(self, tokens, sess, granted):
        sess.oauth_state = 'nonce'
        assert tokens.complete_authorization(sess, 'code-1', 'nonce') == DEFAULT_RETURN_TO

    def test_state_mismatch_is_rejected_and_cleared(self, tokens, pending, oauth):
        with pytest.raises(InvalidState):
            tokens.complete_authorization(pending, 'code-1', 'other')

        assert pending.oauth_state is None
        oauth.get_access_token.assert_not_called()

    def test_replayed_state_is_rejected(self, tokens, pending, granted):
        tokens.complete_authorization(pending, 'code-1', 'nonce')
        with pytest.raises(InvalidState):
            tokens.complete_authorization(pending, 'code-1', 'nonce')

    def test_no_pending_handshake_is_rejected(self, tokens, sess):
        with pytest.raises(InvalidState):
            tokens.complete_authorization(sess, 'code-1', '')

    def test_failed_exchange_still_clears_state(self, tokens, pending, oauth):
        oauth.get_access_token.side_effect = SpotifyOauthError('invalid_grant')

        with pytest.raises(UpstreamAuthError):
            tokens.complete_authorization(pending, 'code-1', 'nonce')

        assert pending.oauth_state is None
        assert pending.access_token is None

    def test_network_failure_on_exchange(self, tokens, pending, oauth):
        oauth.get_access_token.side_effect = requests.exceptions.Timeout('timed out')

        with pytest.raises(UpstreamAuthError):
            tokens.complete_authorization(pending, 'code-1', 'nonce')

        assert pending.oauth_state is None
        assert pending.access_token is None

    def test_identity_failure_is_not_fatal(self, tokens, pending, granted, spotify):
        spotify.current_user.side_effect = UpstreamRequestError(500, 'boom', 'me')

        target = tokens.complete_authorization(pending, 'code-1', 'nonce')

        assert target == 'http://localhost:8080/spotify.html'
        assert pending.access_token == 'access-1'
        assert pending.me_cache is None

    def test_missing_refresh_token_is_rejected(self, tokens, pending, oauth):
        oauth.get_access_token.return_value = {'access_token': 'access-1', 'expires_in': 3600}

        with pytest.raises(UpstreamAuthError):
            tokens.complete_authorization(pending, 'code-1', 'nonce')

        assert pending.access_token is None


class TestLogout:
    def test_clears_every_field(self, tokens, logged_in, store):
        logged_in.me_cache = {'id': 'user-1'}
        store['unrelated'] = 'kept'

        tokens.logout(logged_in)

        assert logged_in.access_token is None
        assert logged_in.refresh_token is None
        assert logged_in.me_cache is None
        assert store == {'unrelated': 'kept'}
