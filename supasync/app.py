from typing import Optional

import httpx

from .api import SupabaseObjectStore, SupabaseRecordStore
from .auth import SupabaseAuth
from .client import SupabaseClient
from .config import Settings
from .files import FilesController
from .notes import NotesController
from .session_store import SessionStore
from .tasks import TaskRunner
from .utils import get_logger


class SupasyncApp:
    """One client instance: a session store and both resource controllers.

    Use as an async context manager. Entering attaches the controllers and
    restores the persisted session. Leaving detaches them, waits for work
    already in flight and closes the HTTP client, also when the block
    raises.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tmp_dir: Optional[str] = None,
    ) -> None:
        self.settings = settings
        self.logger = get_logger("supasync")
        self.client = SupabaseClient(
            settings.url,
            settings.anon_key,
            timeout=settings.timeout,
            http_log_path=settings.http_log_path,
            transport=transport,
        )
        self.auth = SupabaseAuth(self.client, settings.session_path)
        self.store = SessionStore(self.auth)
        self.runner = TaskRunner()
        self.notes = NotesController(self.store, SupabaseRecordStore(self.client, settings.notes_table), self.runner)
        self.files = FilesController(
            self.store,
            SupabaseObjectStore(self.client, settings.bucket),
            self.runner,
            tmp_dir=tmp_dir,
        )

    @classmethod
    def from_env(cls) -> "SupasyncApp":
        return cls(Settings.from_env())

    async def start(self) -> None:
        self.store.attach()
        self.notes.attach()
        self.files.attach()
        session = await self.store.restore()
        if session is not None:
            self.logger.info("Session restored for %s", session.user.email or session.owner_id)

    async def close(self) -> None:
        self.notes.detach()
        self.files.detach()
        self.store.close()
        try:
            await self.runner.drain()
        finally:
            await self.client.close()

    async def __aenter__(self) -> "SupasyncApp":
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
