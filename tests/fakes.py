import asyncio
import copy
import itertools
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from supasync.errors import (
    Conflict,
    EmailInUse,
    InvalidCredentials,
    NetworkError,
    NotFound,
    WeakPassword,
)
from supasync.models import Session, User

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_session(owner_id: str, token: str = "token", email: Optional[str] = None, expires_in: int = 3600) -> Session:
    return Session(
        access_token=f"{token}-{owner_id}",
        refresh_token=f"refresh-{owner_id}",
        expires_at=int(time.time()) + expires_in,
        user=User(id=owner_id, email=email or f"{owner_id}@example.com"),
    )


class FakeAuth:
    def __init__(self, require_confirmation: bool = False) -> None:
        self.users: Dict[str, Tuple[str, str]] = {}
        self.require_confirmation = require_confirmation
        self.network_down = False
        self.fail_sign_out = False
        self.fail_refresh = False
        self.session: Optional[Session] = None
        self._listeners: List[Callable] = []
        self._tokens = itertools.count(1)

    def add_user(self, email: str, password: str, owner_id: str) -> None:
        self.users[email] = (password, owner_id)

    def get_session(self) -> Optional[Session]:
        return self.session

    def on_auth_state_change(self, listener: Callable) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _emit(self, event: str, session: Optional[Session]) -> None:
        self.session = session
        for listener in list(self._listeners):
            listener(event, session)

    def _check_network(self) -> None:
        if self.network_down:
            raise NetworkError("connection refused")

    async def sign_in(self, email: str, password: str) -> Session:
        await asyncio.sleep(0)
        self._check_network()
        known = self.users.get(email)
        if known is None or known[0] != password:
            raise InvalidCredentials()
        session = make_session(known[1], token=f"t{next(self._tokens)}", email=email)
        self._emit("SIGNED_IN", session)
        return session

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        await asyncio.sleep(0)
        self._check_network()
        if email in self.users:
            raise EmailInUse()
        if len(password) < 6:
            raise WeakPassword("Password should be at least 6 characters.")
        owner_id = f"user-{len(self.users) + 1}"
        self.users[email] = (password, owner_id)
        if self.require_confirmation:
            return None
        session = make_session(owner_id, token=f"t{next(self._tokens)}", email=email)
        self._emit("SIGNED_IN", session)
        return session

    async def sign_out(self) -> None:
        await asyncio.sleep(0)
        try:
            if self.fail_sign_out or self.network_down:
                raise NetworkError("connection reset")
        finally:
            self._emit("SIGNED_OUT", None)

    async def refresh(self, refresh_token: str) -> Session:
        await asyncio.sleep(0)
        self._check_network()
        if self.fail_refresh or self.session is None:
            raise InvalidCredentials("Invalid Refresh Token")
        session = make_session(self.session.owner_id, token=f"t{next(self._tokens)}", email=self.session.user.email)
        self._emit("TOKEN_REFRESHED", session)
        return session


class _Gated:
    """Holds list calls per owner until released, and signals completed ones."""

    def __init__(self) -> None:
        self.gates: Dict[str, asyncio.Event] = {}
        self.listed: Dict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self.calls: List[Tuple[str, Any]] = []
        self.fail_next: Optional[Exception] = None
        self.write_gate: Optional[asyncio.Event] = None

    def hold(self, owner_id: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[owner_id] = gate
        return gate

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc

    async def _write(self) -> None:
        if self.write_gate is not None:
            await self.write_gate.wait()
        else:
            await asyncio.sleep(0)
        self._maybe_fail()

    async def _gate(self, owner_id: str) -> None:
        gate = self.gates.get(owner_id)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)


class FakeRecordStore(_Gated):
    def __init__(self) -> None:
        super().__init__()
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._ticks = itertools.count(1)

    def seed(self, owner_id: str, title: str, content: str = "") -> Dict[str, Any]:
        row_id = next(self._ids)
        row = {
            "id": row_id,
            "user_id": owner_id,
            "title": title,
            "content": content,
            "created_at": (BASE_TIME + timedelta(seconds=next(self._ticks))).isoformat(),
        }
        self.rows[row_id] = row
        return copy.deepcopy(row)

    async def list(self, owner_id: str, order_by: Tuple[str, bool]) -> List[Dict[str, Any]]:
        self.calls.append(("list", owner_id))
        await self._gate(owner_id)
        self._maybe_fail()
        column, ascending = order_by
        rows = [copy.deepcopy(row) for row in self.rows.values() if row["user_id"] == owner_id]
        rows.sort(key=lambda row: row[column], reverse=not ascending)
        self.listed[owner_id].set()
        return rows

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("insert", record.get("user_id")))
        await self._write()
        return self.seed(record["user_id"], record["title"], record["content"])

    def _owned(self, record_id: Any, owner_id: str) -> Dict[str, Any]:
        row = self.rows.get(record_id)
        if row is None or row["user_id"] != owner_id:
            raise NotFound("No matching row")
        return row

    async def update(self, record_id: Any, owner_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("update", owner_id))
        await self._write()
        row = self._owned(record_id, owner_id)
        row.update(patch)
        return copy.deepcopy(row)

    async def delete(self, record_id: Any, owner_id: str) -> None:
        self.calls.append(("delete", owner_id))
        await self._write()
        self._owned(record_id, owner_id)
        del self.rows[record_id]


class FakeObjectStore(_Gated):
    def __init__(self) -> None:
        super().__init__()
        self.objects: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def seed(self, path: str, data: bytes = b"", content_type: Optional[str] = None) -> None:
        self.objects[path] = {
            "id": f"obj-{next(self._ids)}",
            "data": data,
            "content_type": content_type,
            "created_at": BASE_TIME.isoformat(),
        }

    async def list(self, folder: str) -> List[Dict[str, Any]]:
        self.calls.append(("list", folder))
        await self._gate(folder)
        self._maybe_fail()
        prefix = f"{folder}/"
        rows = []
        for path, obj in self.objects.items():
            if path.startswith(prefix):
                rows.append({
                    "name": path[len(prefix):],
                    "id": obj["id"],
                    "created_at": obj["created_at"],
                    "updated_at": obj["created_at"],
                    "metadata": {"size": len(obj["data"]), "mimetype": obj["content_type"]},
                })
        rows.sort(key=lambda row: row["name"])
        self.listed[folder].set()
        return rows

    async def upload(self, path: str, data: bytes, overwrite: bool = False, content_type: Optional[str] = None) -> None:
        self.calls.append(("upload", path))
        await self._write()
        if path in self.objects and not overwrite:
            raise Conflict("The resource already exists", status=409)
        self.seed(path, data, content_type)

    async def download(self, path: str) -> bytes:
        self.calls.append(("download", path))
        await self._write()
        if path not in self.objects:
            raise NotFound("Object not found", status=404)
        return self.objects[path]["data"]

    async def remove(self, paths: Sequence[str]) -> List[str]:
        self.calls.append(("remove", list(paths)))
        await self._write()
        removed = []
        for path in paths:
            if self.objects.pop(path, None) is not None:
                removed.append(path)
        return removed

    def get_public_url(self, path: str) -> str:
        return f"https://demo.supabase.co/storage/v1/object/public/user_files/{path}"
