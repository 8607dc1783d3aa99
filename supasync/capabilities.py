"""Interfaces of the remote collaborators.

Any backend satisfying these is acceptable. The Supabase implementations
live in :mod:`supasync.api` and :mod:`supasync.auth`; the tests use
in-memory ones. All of them raise :class:`supasync.errors.SupasyncError`
subclasses on failure.
"""
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .models import Session

AuthListener = Callable[[str, Optional[Session]], None]


class AuthCapability(Protocol):
    async def sign_in(self, email: str, password: str) -> Session: ...

    # None when the provider wants the email confirmed first
    async def sign_up(self, email: str, password: str) -> Optional[Session]: ...

    async def sign_out(self) -> None: ...

    async def refresh(self, refresh_token: str) -> Session: ...

    def get_session(self) -> Optional[Session]: ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]: ...


class RecordStore(Protocol):
    async def list(self, owner_id: str, order_by: Tuple[str, bool]) -> List[Dict[str, Any]]: ...

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update(self, record_id: Any, owner_id: str, patch: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete(self, record_id: Any, owner_id: str) -> None: ...


class ObjectStore(Protocol):
    async def list(self, folder: str) -> List[Dict[str, Any]]: ...

    async def upload(
        self,
        path: str,
        data: bytes,
        overwrite: bool = False,
        content_type: Optional[str] = None,
    ) -> None: ...

    async def download(self, path: str) -> bytes: ...

    async def remove(self, paths: Sequence[str]) -> List[str]: ...

    def get_public_url(self, path: str) -> str: ...
