"""
Provider Admin API Package
==========================

Async client for the provider's administrative endpoints that fetch and
resolve login, consent and logout challenges.

Usage:
------
    from hydra_consent.hydra import AdminClient
    client = AdminClient("http://localhost:4445")
"""

from .client import AdminClient

__all__ = ["AdminClient"]
