"""
Hydra Consent Service

Login, consent and logout pages for an OAuth2/OpenID Connect provider that
delegates user interaction through challenges resolved over its admin API.
"""

__version__ = "1.0.0"
