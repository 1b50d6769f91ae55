"""PocketAuth: OAuth2 authorization server engine."""

__version__ = "0.1.0"
