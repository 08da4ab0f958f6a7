"""Session context for the POS back-office API."""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Optional

from .models import SessionData, User, UserRole

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionData], None]


class SessionContext:
    """
    Holds the bearer token and current user, persisted between runs.

    The session is loaded from disk on construction. ``clear_session`` is the
    teardown: it forgets the token, removes the file and notifies listeners
    (for instance the terminal, which drops its cart on logout). A token the
    API no longer accepts is cleared with ``notify=False`` so that the
    transaction in progress survives a re-login.
    """

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the session context.

        Args:
            session_file: Path to store session data. Defaults to ~/.dutyfree_pos_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".dutyfree_pos_session.json")
        self.session_file = session_file
        self._listeners: list[SessionListener] = []
        self.session: SessionData = self._load_session()

    def _load_session(self) -> SessionData:
        """Load session data from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    data = json.load(f)
                    session = SessionData(**data)
                    if session.is_authenticated:
                        logger.info(f"Loaded existing session from {self.session_file}")
                    return session
            except (json.JSONDecodeError, ValueError, TypeError):
                # If file is corrupted, start fresh
                logger.warning(f"Ignoring unreadable session file {self.session_file}")
        return SessionData()

    def _save_session(self) -> None:
        """Save session data to file."""
        with open(self.session_file, "w") as f:
            json.dump(self.session.model_dump(mode="json"), f)
        # Set restrictive permissions on session file
        os.chmod(self.session_file, 0o600)

    def save_session(self, token: str, user: Optional[User] = None) -> None:
        """
        Save authentication session.

        Args:
            token: Bearer token from a successful login
            user: Authenticated user profile
        """
        self.session = SessionData(token=token, user=user, is_authenticated=True)
        self._save_session()
        logger.info(f"Session saved for {user.username if user else 'unknown user'}")

    def set_user(self, user: User) -> None:
        """Refresh the stored profile of the current user."""
        self.session.user = user
        self._save_session()

    def clear_session(self, notify: bool = True) -> None:
        """
        Forget the token and delete the session file.

        Args:
            notify: Call the teardown listeners. Off when the token merely
                expired, on for an explicit logout.
        """
        previous = self.session
        self.session = SessionData()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)
        if notify:
            for listener in list(self._listeners):
                listener(previous)
        logger.info("Session cleared" if notify else "Session expired")

    def add_listener(self, listener: SessionListener) -> None:
        """Register a callback invoked with the old session on teardown."""
        self._listeners.append(listener)

    def is_authenticated(self) -> bool:
        """Check if there's an active authenticated session."""
        return self.session.is_authenticated and bool(self.session.token)

    def get_token(self) -> Optional[str]:
        return self.session.token if self.is_authenticated() else None

    @property
    def current_user(self) -> Optional[User]:
        return self.session.user if self.is_authenticated() else None

    def has_role(self, roles: Iterable[UserRole]) -> bool:
        """Check whether the current user holds one of ``roles``."""
        user = self.current_user
        if user is None or user.role is None:
            return False
        return user.role in {UserRole(role) for role in roles}
