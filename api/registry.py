"""Registry of live WebSocket sessions."""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Session:
    """One open duplex channel."""

    socket: Any
    user_id: Optional[str] = None
    handle: str = field(default_factory=lambda: uuid.uuid4().hex)
    alive: bool = True
    state: ConnectionState = ConnectionState.CONNECTING
    opened_at: datetime = field(default_factory=datetime.utcnow)


class SessionRegistry:
    """Thread-safe set of open sessions keyed by handle.

    The lock only guards the dict itself and is never held across socket or
    network I/O.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def register(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.handle] = session

    def unregister(self, session: Session) -> None:
        with self._lock:
            self._sessions.pop(session.handle, None)

    def size(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sessions(self) -> List[Session]:
        """Snapshot of the current sessions, safe to iterate without the lock."""
        with self._lock:
            return list(self._sessions.values())

    def __contains__(self, session: Session) -> bool:
        with self._lock:
            return session.handle in self._sessions

    def __len__(self) -> int:
        return self.size()
