"""
Process-wide authentication state.

A single SessionManager holds the session, user and profile for the whole
application and keeps exactly one subscription to the auth client's change
notifications. Every flow reads the signed-in user from here.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..domain.exceptions import AuthenticationError, PermissionDeniedError, StoreError
from ..domain.models import AuthUser, Profile, Session
from .protocols import AuthClientProtocol, AuthEvent, StoreProtocol

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Tracks who is signed in and loads their profile on every auth change.

    Profile responses that resolve after a newer auth event are discarded,
    so a slow lookup never overwrites the state of a later sign-in or sign-out.
    """

    def __init__(self, auth_client: AuthClientProtocol, store: StoreProtocol) -> None:
        self._auth_client = auth_client
        self._store = store
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._generation = 0

        self.session: Optional[Session] = None
        self.profile: Optional[Profile] = None
        self.loading = True

    @property
    def user(self) -> Optional[AuthUser]:
        return self.session.user if self.session else None

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to auth changes; calling it twice keeps one subscription."""
        if self._unsubscribe is None:
            self._unsubscribe = self._auth_client.on_auth_state_change(self.handle_auth_change)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def restore(self) -> None:
        """Start listening and replay the persisted session, if any."""
        self.start()
        await self._auth_client.restore_session()

    async def handle_auth_change(self, event: AuthEvent, session: Optional[Session]) -> None:
        self._generation += 1
        generation = self._generation

        logger.debug("Auth event %s (user=%s)", event.value, session.user.id if session else None)

        self.loading = True
        self.session = session

        if session is None:
            self.profile = None
            self.loading = False
            return

        profile = await self._load_profile(session.user)

        if generation != self._generation:
            logger.debug("Discarding profile of %s; a newer auth event arrived", session.user.id)
            return

        self.profile = profile
        self.loading = False

    async def _load_profile(self, user: AuthUser) -> Optional[Profile]:
        try:
            profile = await self._store.fetch_profile(user.id)
        except StoreError as exc:
            logger.error("Could not load profile of %s: %s", user.id, exc)
            return None

        if profile is None:
            # Signed in before the profile row was written (sign-up race)
            logger.debug("No profile row yet for %s", user.id)
        return profile

    def require_user(self) -> AuthUser:
        """
        Raises:
            AuthenticationError: If nobody is signed in
        """
        if self.user is None:
            raise AuthenticationError("Você precisa entrar na sua conta (barberbook login).")
        return self.user

    def require_admin(self) -> Profile:
        """
        Raises:
            AuthenticationError: If nobody is signed in
            PermissionDeniedError: If the signed-in user is not an admin
        """
        self.require_user()
        if self.profile is None or not self.profile.is_admin:
            raise PermissionDeniedError("Esta ação é exclusiva para administradores.")
        return self.profile
