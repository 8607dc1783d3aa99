import json
import os
from pathlib import Path
from typing import Callable, Dict, Optional

from .capabilities import AuthCapability
from .errors import NoActiveSession, SupasyncError
from .models import Result, Session, SignUpOutcome
from .utils import get_logger

SessionListener = Callable[[Optional[Session]], None]


def save_session(path: str, session: Session) -> None:
    session_path = Path(path)
    session_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"session": session.to_dict()}
    session_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
    os.chmod(session_path, 0o600)


def load_session(path: str) -> Optional[Session]:
    session_path = Path(path)
    if not session_path.exists():
        return None
    data = json.loads(session_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Session file must be a JSON object")
    raw = data.get("session")
    if not raw:
        return None
    return Session.from_api(raw)


def clear_session(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def _same_session(a: Optional[Session], b: Optional[Session]) -> bool:
    if a is None or b is None:
        return a is b
    return a.access_token == b.access_token and a.owner_id == b.owner_id


class Subscription:
    """Handle returned by :meth:`SessionStore.subscribe`.

    ``unsubscribe`` is idempotent, and the handle doubles as a context
    manager so the listener is released on every exit path.
    """

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Optional[Callable[[], None]] = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class SessionStore:
    """Holds the single current session of one client instance.

    Every transition bumps ``generation`` and is delivered synchronously to
    all listeners, in registration order, before the transition's caller
    resumes. Listeners may schedule async work but cannot delay delivery to
    the others.
    """

    def __init__(self, auth: AuthCapability) -> None:
        self._auth = auth
        self._session: Optional[Session] = None
        self._listeners: Dict[int, SessionListener] = {}
        self._next_id = 0
        self._bridge: Optional[Callable[[], None]] = None
        self.generation = 0
        self.logger = get_logger("supasync.session")

    def current(self) -> Optional[Session]:
        return self._session

    def subscribe(self, callback: SessionListener) -> Subscription:
        listener_id = self._next_id
        self._next_id += 1
        self._listeners[listener_id] = callback
        return Subscription(lambda: self._listeners.pop(listener_id, None))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def attach(self) -> None:
        if self._bridge is None:
            self._bridge = self._auth.on_auth_state_change(self._on_provider_event)

    def close(self) -> None:
        bridge, self._bridge = self._bridge, None
        if bridge is not None:
            bridge()

    def _on_provider_event(self, event: str, session: Optional[Session]) -> None:
        self.logger.debug("Provider event %s", event)
        self._apply(session)

    def _apply(self, session: Optional[Session]) -> None:
        if _same_session(self._session, session):
            return
        self._session = session
        self.generation += 1
        owner = session.owner_id if session else None
        self.logger.info("Session changed owner=%s generation=%s", owner, self.generation)
        for listener in list(self._listeners.values()):
            try:
                listener(session)
            except Exception:
                self.logger.exception("Session listener failed")

    async def restore(self) -> Optional[Session]:
        session = self._auth.get_session()
        if session is not None and session.expired():
            self.logger.info("Stored session expired, refreshing")
            try:
                session = await self._auth.refresh(session.refresh_token)
            except SupasyncError as exc:
                self.logger.info("Session refresh failed: %s", exc)
                session = None
        self._apply(session)
        return self._session

    async def sign_in(self, email: str, password: str) -> Result[Session]:
        try:
            session = await self._auth.sign_in(email, password)
        except SupasyncError as exc:
            return Result.failure(exc)
        self._apply(session)
        return Result.success(session, "Logged in successfully!")

    async def sign_up(self, email: str, password: str) -> Result[SignUpOutcome]:
        try:
            session = await self._auth.sign_up(email, password)
        except SupasyncError as exc:
            return Result.failure(exc)
        if session is None:
            return Result.success(
                SignUpOutcome.PENDING_CONFIRMATION,
                "Signed up successfully! Please check your email to confirm.",
            )
        self._apply(session)
        return Result.success(SignUpOutcome.SIGNED_IN, "Signed up and logged in.")

    async def sign_out(self) -> Result[None]:
        error: Optional[SupasyncError] = None
        try:
            await self._auth.sign_out()
        except SupasyncError as exc:
            self.logger.info("Remote sign-out failed, clearing local session anyway: %s", exc)
            error = exc
        finally:
            self._apply(None)
        if error is not None:
            return Result.failure(error)
        return Result.success(None, "Logged out successfully!")

    async def refresh(self) -> Result[Session]:
        if self._session is None:
            return Result.failure(NoActiveSession())
        try:
            session = await self._auth.refresh(self._session.refresh_token)
        except SupasyncError as exc:
            return Result.failure(exc)
        self._apply(session)
        return Result.success(session)
