"""
Identity Package

Users, password verification and the login session cookie.

Modules:
- bridge: User/UserStore interfaces, in-memory store, IdentityBridge
- session: Session JWT cookie and redirect notices
"""

from .bridge import IdentityBridge, InMemoryUserStore, SessionableUser, StoredUser, User, UserStore
from .session import SessionManager

__all__ = [
    "IdentityBridge",
    "InMemoryUserStore",
    "SessionableUser",
    "SessionManager",
    "StoredUser",
    "User",
    "UserStore",
]
