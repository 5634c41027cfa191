"""Authentication collaborator consulted by the sync engine and scheduler."""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..utils.logging_config import get_logger, log_exception

logger = get_logger("sync")

AuthListener = Callable[[Optional[str]], None]


class AuthProvider(ABC):
    """Source of the signed-in user whose namespace is synced."""

    @abstractmethod
    def get_current_user_id(self) -> Optional[str]:
        """Get the signed-in user id, or None when signed out."""
        pass

    @abstractmethod
    def sign_in(self, user_id: str) -> None:
        """Sign a user in."""
        pass

    @abstractmethod
    def sign_out(self) -> None:
        """Sign the current user out."""
        pass

    @abstractmethod
    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register ``callback(user_id)``; returns a function that unregisters it."""
        pass


class LocalAuthProvider(AuthProvider):
    """In-process provider; the identity protocol lives outside this package."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self._listeners: List[AuthListener] = []

    def get_current_user_id(self) -> Optional[str]:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id must not be empty")
        self._user_id = user_id
        logger.info(f"Signed in as {user_id}")
        self._notify()

    def sign_out(self) -> None:
        if self._user_id is None:
            return
        logger.info(f"Signed out {self._user_id}")
        self._user_id = None
        self._notify()

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._user_id)
            except Exception as e:
                log_exception("sync", e, {"listener": getattr(listener, "__name__", repr(listener))})
