"""
Session/Identity Bridge
=======================

Thin adapter over the host's user store and login session. The consent
flow needs four things from it:

- load a user by principal id (UserNotFound when unknown)
- verify a submitted password against the stored hash
- the user authenticated in the current browser session, if any
- the session payload to forward to the provider (empty when the user
  object does not provide one)

Hosts plug in their own store by implementing UserStore; the in-memory
store here backs development setups and tests.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError
from starlette.requests import Request

from ..exceptions import UserNotFound
from .session import SessionManager

logger = logging.getLogger(__name__)


# =============================================================================
# Interfaces
# =============================================================================

@runtime_checkable
class User(Protocol):
    def get_pid(self) -> str: ...

    def get_password(self) -> str: ...


@runtime_checkable
class SessionableUser(User, Protocol):
    def get_session(self) -> Mapping[str, Any]: ...


class UserStore(Protocol):
    def load(self, pid: str) -> User:
        """Return the user stored under `pid` or raise UserNotFound."""
        ...


# =============================================================================
# In-memory Store
# =============================================================================

@dataclass
class StoredUser:
    """
    A user record with an argon2 password hash and an optional token session.

    The session mapping is forwarded to the provider on consent, e.g.
    {"id_token": {"email": "..."}}.
    """

    pid: str
    password_hash: str
    session: Dict[str, Any] = field(default_factory=dict)

    def get_pid(self) -> str:
        return self.pid

    def get_password(self) -> str:
        return self.password_hash

    def get_session(self) -> Dict[str, Any]:
        return dict(self.session)


class InMemoryUserStore:
    """Dictionary-backed UserStore."""

    def __init__(self, users: Iterable[StoredUser] = ()):
        self._users: Dict[str, StoredUser] = {u.pid: u for u in users}

    def add(self, user: StoredUser) -> None:
        self._users[user.pid] = user

    def load(self, pid: str) -> StoredUser:
        try:
            return self._users[pid]
        except KeyError:
            raise UserNotFound(f"no user with pid {pid}") from None

    def __len__(self) -> int:
        return len(self._users)

    @classmethod
    def from_file(cls, path: str) -> "InMemoryUserStore":
        """
        Load users from a JSON file.

        The file holds a list of objects with "pid", "password_hash"
        (argon2) and an optional "session" mapping.
        """
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        users = [
            StoredUser(
                pid=entry["pid"],
                password_hash=entry["password_hash"],
                session=entry.get("session") or {},
            )
            for entry in raw
        ]
        logger.info(f"Loaded {len(users)} users from {path}")
        return cls(users)


# =============================================================================
# Bridge
# =============================================================================

class IdentityBridge:
    """
    What the consent flow needs from users and sessions.

    Args:
        store: Where users are loaded from
        sessions: Login session cookie manager
        hasher: argon2 password hasher
    """

    def __init__(
        self,
        store: UserStore,
        sessions: SessionManager,
        hasher: Optional[PasswordHasher] = None,
    ):
        self.store = store
        self.sessions = sessions
        self._hasher = hasher or PasswordHasher()

    def load_user_by_pid(self, pid: str) -> User:
        return self.store.load(pid)

    def verify_password(self, user: User, submitted: str) -> bool:
        try:
            return self._hasher.verify(user.get_password(), submitted)
        except VerificationError:
            return False
        except InvalidHash:
            logger.error(
                "Stored password hash is not a valid argon2 hash",
                extra={"pid": user.get_pid()},
            )
            return False

    def current_user(self, request: Request) -> Optional[User]:
        pid = self.sessions.current_subject(request)
        if not pid:
            return None
        try:
            return self.store.load(pid)
        except UserNotFound:
            logger.warning("Session refers to an unknown user", extra={"pid": pid})
            return None

    @staticmethod
    def session_payload(user: Optional[User]) -> Dict[str, Any]:
        if isinstance(user, SessionableUser):
            return dict(user.get_session() or {})
        return {}
