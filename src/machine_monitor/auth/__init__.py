"""Authentication module for the machine monitor client."""

from .client import AuthClient

__all__ = ["AuthClient"]
