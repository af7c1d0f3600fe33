"""
Score leaderboard storage.

``InMemoryScoreStore`` keeps scores for the life of the process;
``SqliteScoreStore`` persists them to a local database file.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

from .models import Score

DEFAULT_TOP_LIMIT = 10
MAX_TOP_LIMIT = 100


def clamp_limit(limit):
    if limit is None:
        return DEFAULT_TOP_LIMIT
    return max(1, min(MAX_TOP_LIMIT, int(limit)))


def _validate(username, value):
    if not username or not str(username).strip():
        raise ValueError('username is required')
    if value is None:
        raise ValueError('value is required')
    return str(username).strip(), int(value)


class ScoreStore(ABC):
    """Interface for leaderboard backends."""

    @abstractmethod
    def add(self, username, value):
        pass

    @abstractmethod
    def top(self, limit=None):
        """Highest scores first; ties go to the earlier score."""


class InMemoryScoreStore(ScoreStore):
    def __init__(self):
        self._scores = []
        self._lock = threading.Lock()

    def add(self, username, value):
        username, value = _validate(username, value)
        score = Score(username=username, value=value, at=datetime.now(timezone.utc))
        with self._lock:
            self._scores.append(score)
        return score

    def top(self, limit=None):
        with self._lock:
            ranked = sorted(self._scores, key=lambda s: (-s.value, s.at))
        return ranked[:clamp_limit(limit)]


class SqliteScoreStore(ScoreStore):
    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._init_db()

    def _connect(self):
        return closing(sqlite3.connect(str(self.db_path)))

    def _init_db(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scores (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL,
                    value INTEGER NOT NULL,
                    at TEXT NOT NULL
                )
            """)
            conn.commit()

    def add(self, username, value):
        username, value = _validate(username, value)
        score = Score(username=username, value=value, at=datetime.now(timezone.utc))
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO scores (username, value, at) VALUES (?, ?, ?)",
                (score.username, score.value, score.at.isoformat()),
            )
            conn.commit()
        return score

    def top(self, limit=None):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT username, value, at FROM scores ORDER BY value DESC, at ASC, id ASC LIMIT ?",
                (clamp_limit(limit),),
            ).fetchall()
        return [
            Score(username=u, value=v, at=datetime.fromisoformat(at))
            for u, v, at in rows
        ]
