"""Typed values decoded from Spotify payloads and returned by the service."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class UserProfile:
    """The subset of ``/v1/me`` the service relies on, plus the raw payload."""

    id: str
    country: Optional[str] = None
    display_name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'UserProfile':
        country = payload.get('country')
        return cls(
            id=payload['id'],
            country=country if isinstance(country, str) and country else None,
            display_name=payload.get('display_name'),
            raw=payload,
        )


@dataclass
class CommitResult:
    """Outcome of creating a playlist and attaching its tracks.

    ``add_error`` is set when the playlist was created but the tracks could
    not be attached; the playlist is still returned.
    """

    playlist: Dict[str, Any]
    add_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'ok': True, 'playlist': self.playlist}
        if self.add_error is not None:
            result['addError'] = self.add_error
        return result


@dataclass
class Score:
    username: str
    value: int
    at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {'username': self.username, 'value': self.value,
                'at': self.at.isoformat()}
