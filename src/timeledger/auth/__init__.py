"""Authentication collaborator."""

from .provider import AuthProvider, LocalAuthProvider

__all__ = ["AuthProvider", "LocalAuthProvider"]
