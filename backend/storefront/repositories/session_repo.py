import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.orm import Session

from storefront.models.session import AuthSession


def utcnow() -> datetime:
    # naive UTC, matching what DateTime columns round-trip on SQLite
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionRepository:
    """
    Storage contract for login sessions.

    Request handling only ever talks to this interface (see api/deps.py), so
    tests and alternative deployments can swap the backing store.
    """

    def get(self, token: str) -> Optional[dict]:
        raise NotImplementedError

    def set(self, token: str, data: dict, ttl_seconds: int) -> None:
        raise NotImplementedError

    def expire(self, token: str) -> None:
        raise NotImplementedError

    def purge_expired(self) -> int:
        raise NotImplementedError


class DbSessionRepository(SessionRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self, token: str) -> Optional[dict]:
        row = self.db.get(AuthSession, token)
        if row is None or row.expires_at <= utcnow():
            return None
        return dict(row.data or {})

    def set(self, token: str, data: dict, ttl_seconds: int) -> None:
        row = self.db.get(AuthSession, token)
        if row is None:
            row = AuthSession(token=token)
            self.db.add(row)
        row.user_id = data.get("user_id")
        row.data = data
        row.expires_at = utcnow() + timedelta(seconds=ttl_seconds)
        self.db.commit()

    def expire(self, token: str) -> None:
        self.db.execute(delete(AuthSession).where(AuthSession.token == token))
        self.db.commit()

    def purge_expired(self) -> int:
        res = self.db.execute(delete(AuthSession).where(AuthSession.expires_at <= utcnow()))
        self.db.commit()
        return res.rowcount or 0


class InMemorySessionRepository(SessionRepository):
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._rows: Dict[str, Tuple[dict, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, token: str) -> Optional[dict]:
        with self._lock:
            row = self._rows.get(token)
            if row is None or row[1] <= self._clock():
                return None
            return dict(row[0])

    def set(self, token: str, data: dict, ttl_seconds: int) -> None:
        with self._lock:
            self._rows[token] = (dict(data), self._clock() + timedelta(seconds=ttl_seconds))

    def expire(self, token: str) -> None:
        with self._lock:
            self._rows.pop(token, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            dead = [t for t, (_, exp) in self._rows.items() if exp <= now]
            for t in dead:
                del self._rows[t]
        return len(dead)
