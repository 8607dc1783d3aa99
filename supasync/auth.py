from typing import Callable, List, Optional

from . import api
from .capabilities import AuthListener
from .client import SupabaseClient
from .config import DEFAULT_SESSION_PATH
from .models import Session
from .session_store import clear_session, load_session, save_session
from .utils import get_logger


class SupabaseAuth:
    """GoTrue-backed auth provider.

    Owns the provider-side session state, including its JSON file on disk,
    and keeps the HTTP client's bearer token in step with it.
    """

    def __init__(self, client: SupabaseClient, session_path: Optional[str] = DEFAULT_SESSION_PATH) -> None:
        self.client = client
        self.session_path = session_path
        self.logger = get_logger("supasync.auth")
        self._session: Optional[Session] = None
        self._loaded = False
        self._listeners: List[AuthListener] = []

    def get_session(self) -> Optional[Session]:
        if not self._loaded:
            self._loaded = True
            if self.session_path:
                try:
                    self._session = load_session(self.session_path)
                except (OSError, ValueError, KeyError) as exc:
                    self.logger.info("Session auto-load failed: %s", exc)
                    self._session = None
            self.client.set_access_token(self._session.access_token if self._session else None)
        return self._session

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, email: str, password: str) -> Session:
        payload = await api.sign_in_with_password(self.client, email, password)
        session = Session.from_api(payload)
        self._set_session(session, "SIGNED_IN")
        return session

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        payload = await api.sign_up(self.client, email, password)
        if not payload.get("access_token"):
            self.logger.info("Sign-up for %s is waiting for email confirmation", email)
            return None
        session = Session.from_api(payload)
        self._set_session(session, "SIGNED_IN")
        return session

    async def sign_out(self) -> None:
        session = self.get_session()
        try:
            if session is not None:
                await api.sign_out(self.client, session.access_token)
        finally:
            self._set_session(None, "SIGNED_OUT")

    async def refresh(self, refresh_token: str) -> Session:
        payload = await api.refresh_session(self.client, refresh_token)
        session = Session.from_api(payload)
        self._set_session(session, "TOKEN_REFRESHED")
        return session

    def _set_session(self, session: Optional[Session], event: str) -> None:
        self._loaded = True
        self._session = session
        self.client.set_access_token(session.access_token if session else None)
        self._persist(session)
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                self.logger.exception("Auth listener failed for %s", event)

    def _persist(self, session: Optional[Session]) -> None:
        if not self.session_path:
            return
        try:
            if session is None:
                clear_session(self.session_path)
            else:
                save_session(self.session_path, session)
        except OSError as exc:
            self.logger.warning("Could not persist session to %s: %s", self.session_path, exc)
