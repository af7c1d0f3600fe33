"""Exception classes for the GenreMix service."""


class GenreMixError(Exception):
    """Base exception for all GenreMix errors."""

    pass


class ConfigurationError(GenreMixError):
    """A required configuration value is missing."""

    pass


class Unauthenticated(GenreMixError):
    """The session holds no usable refresh token.

    Recoverable by running the authorization handshake again.
    """

    def __init__(self, message='Not logged in'):
        super().__init__(message)


class InvalidState(GenreMixError):
    """The OAuth ``state`` returned by the provider did not match the session nonce."""

    def __init__(self, message='Invalid state'):
        super().__init__(message)


class UpstreamAuthError(GenreMixError):
    """The token endpoint rejected a code exchange or a refresh."""

    pass


class UpstreamRequestError(GenreMixError):
    """A data call to the Web API returned a non-success response.

    Attributes:
        status: HTTP status from the upstream, or None for transport failures
        body: Upstream error text, passed through to the caller verbatim
    """

    def __init__(self, status, body, endpoint=''):
        self.status = status
        self.body = body
        self.endpoint = endpoint
        super().__init__(f'{endpoint or "Spotify"} failed ({status}): {body}')


class MalformedUpstreamResponse(GenreMixError):
    """A payload did not have the expected shape.

    Attributes:
        endpoint: Short name of the call that produced the payload
    """

    def __init__(self, endpoint, detail=''):
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f'Unexpected {endpoint} shape: {detail}'.rstrip(': '))


class NoTracksFound(GenreMixError):
    """Every sourcing strategy came back without a usable track."""

    def __init__(self, genre=''):
        self.genre = genre
        super().__init__('No tracks found for that genre.')
