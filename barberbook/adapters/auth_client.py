"""
Authentication against the hosted auth service (GoTrue REST API).
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import keyring
import requests
from keyring.errors import KeyringError

from ..domain.exceptions import AuthenticationError
from ..domain.models import AuthUser, Session
from ..services.protocols import AuthEvent, AuthListener, SignUpResult

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "barberbook"


class SessionStorage:
    """
    Persists the auth session between runs.

    The OS keyring is preferred; when it is unavailable the session is written
    to a plaintext file readable only by the owner.
    """

    def __init__(self, key_identifier: str, session_file: Path):
        self.session_file = session_file
        self._key_identifier = key_identifier
        self._keyring_supported = True
        self._insecure_storage_warning: Optional[str] = None

    @property
    def backend(self) -> str:
        """Return the active storage backend (keyring or file)."""
        return "keyring" if self._keyring_supported else "file"

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when storage falls back to plaintext."""
        return self._insecure_storage_warning

    def load(self) -> Optional[Session]:
        serialized = self._load_from_keyring()
        if serialized is None:
            serialized = self._load_from_file()
        if not serialized:
            return None

        try:
            return Session.from_dict(json.loads(serialized))
        except ValueError as exc:
            logger.warning("Could not deserialize stored session: %s", exc)
            return None

    def save(self, session: Session) -> None:
        serialized = json.dumps(session.to_dict())
        if self._keyring_supported and self._save_to_keyring(serialized):
            return
        self._save_to_file(serialized)

    def clear(self) -> None:
        if self.session_file.exists():
            self.session_file.unlink()
        if self._keyring_supported:
            try:
                keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
            except KeyringError as exc:  # pragma: no cover - environment dependent
                logger.debug("Could not remove session from keyring: %s", exc)

    def _load_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None
        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_from_file(self) -> Optional[str]:
        if self.session_file.exists():
            try:
                with open(self.session_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load session file %s: %s", self.session_file, exc)
        return None

    def _save_to_keyring(self, serialized: str) -> bool:
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self._key_identifier, serialized)
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_to_file(self, serialized: str) -> None:
        try:
            self.session_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.session_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.session_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save session to %s: %s", self.session_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext file.",
                reason,
            )
        self._keyring_supported = False
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext session file at {self.session_file}."
            )


class ListenerRegistry:
    """Auth-change subscribers; shared by the real and mock auth clients."""

    def __init__(self):
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._listeners)

    async def emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            result = listener(event, session)
            if inspect.isawaitable(result):
                await result


class SupabaseAuthClient:
    """
    Client for the auth service's password flow.

    Implements AuthClientProtocol. Auth changes (sign in, sign out, refresh,
    restored session) are broadcast to subscribers.
    """

    def __init__(
        self,
        auth_url: str,
        api_key: str,
        storage: Optional[SessionStorage] = None,
        timeout: float = 15.0,
        http: Optional[requests.Session] = None
    ):
        """
        Initialize the auth client.

        Args:
            auth_url: Base URL, e.g. https://<project>.supabase.co/auth/v1
            api_key: Public (anon) API key
            storage: Where the session is persisted; None keeps it in memory only
            timeout: Request timeout in seconds
            http: Optional requests session (injected in tests)
        """
        self.auth_url = auth_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._storage = storage
        self._http = http or requests.Session()
        self._session: Optional[Session] = None
        self._listeners = ListenerRegistry()

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def current_access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    async def restore_session(self) -> Optional[Session]:
        """
        Load the persisted session, refreshing it when expired.

        Emits INITIAL_SESSION with the restored session (or None).
        """
        session = self._storage.load() if self._storage else None

        if session is not None and session.is_expired():
            try:
                session = await asyncio.to_thread(self._refresh, session.refresh_token)
            except AuthenticationError as exc:
                logger.info("Stored session could not be refreshed: %s", exc)
                session = None
                if self._storage:
                    self._storage.clear()
            else:
                self._persist(session)

        self._session = session
        await self._listeners.emit(AuthEvent.INITIAL_SESSION, session)
        return session

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        payload = await asyncio.to_thread(
            self._post, "signup", {"email": email, "password": password}
        )

        session = None
        if payload.get("access_token"):
            session = Session.from_dict(payload)

        user_data = payload.get("user") if "user" in payload else payload
        user = None
        if isinstance(user_data, dict) and user_data.get("id"):
            user = AuthUser(id=user_data["id"], email=user_data.get("email") or email)

        if session is not None:
            self._session = session
            self._persist(session)
            await self._listeners.emit(AuthEvent.SIGNED_IN, session)

        return SignUpResult(user=user, session=session)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        payload = await asyncio.to_thread(
            self._post,
            "token",
            {"email": email, "password": password},
            {"grant_type": "password"},
        )
        session = self._session_from_payload(payload)

        self._session = session
        self._persist(session)
        await self._listeners.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def refresh_session(self) -> Session:
        if self._session is None or not self._session.refresh_token:
            raise AuthenticationError("No session to refresh.")

        session = await asyncio.to_thread(self._refresh, self._session.refresh_token)
        self._session = session
        self._persist(session)
        await self._listeners.emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self) -> None:
        session = self._session
        if session is not None:
            try:
                await asyncio.to_thread(
                    self._post, "logout", None, None, session.access_token
                )
            except AuthenticationError as exc:
                # The local session is dropped regardless
                logger.warning("Remote sign-out failed: %s", exc)

        self._session = None
        if self._storage:
            self._storage.clear()
        await self._listeners.emit(AuthEvent.SIGNED_OUT, None)

    async def reset_password_for_email(self, email: str) -> None:
        await asyncio.to_thread(self._post, "recover", {"email": email})

    async def get_user(self) -> Optional[AuthUser]:
        if self._session is None:
            return None

        payload = await asyncio.to_thread(self._get, "user", self._session.access_token)
        if not payload.get("id"):
            return None
        return AuthUser(id=payload["id"], email=payload.get("email") or "")

    def _refresh(self, refresh_token: str) -> Session:
        if not refresh_token:
            raise AuthenticationError("Session expired and no refresh token is available.")
        payload = self._post(
            "token", {"refresh_token": refresh_token}, {"grant_type": "refresh_token"}
        )
        return self._session_from_payload(payload)

    def _persist(self, session: Session) -> None:
        if self._storage:
            self._storage.save(session)

    @staticmethod
    def _session_from_payload(payload: Dict[str, Any]) -> Session:
        try:
            return Session.from_dict(payload)
        except ValueError as exc:
            raise AuthenticationError(f"Unexpected auth response: {exc}") from exc

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(
        self,
        path: str,
        body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._send("POST", path, body, params, access_token)

    def _get(self, path: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        return self._send("GET", path, None, None, access_token)

    def _send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, str]],
        access_token: Optional[str]
    ) -> Dict[str, Any]:
        url = f"{self.auth_url}/{path}"
        try:
            response = self._http.request(
                method,
                url,
                json=body,
                params=params,
                headers=self._headers(access_token),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Could not reach the auth service: {exc}") from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            message = "Unknown error"
            if isinstance(payload, dict):
                message = (
                    payload.get("error_description")
                    or payload.get("msg")
                    or payload.get("message")
                    or payload.get("error")
                    or message
                )
            raise AuthenticationError(f"{message} (HTTP {response.status_code})")

        return payload if isinstance(payload, dict) else {}
