"""Per-owner working sets kept in step with the session store.

A :class:`ScopedResourceController` mirrors one kind of remote resource for
whoever is signed in. It re-lists on every session transition, clears
synchronously when the session goes away, drops list responses that
arrive after their owner or generation stopped being current, and applies
mutations only once the backend has confirmed them. A confirmed mutation
supersedes any list still in flight and triggers a fresh one.

Concurrent mutations are neither queued nor locked. Two edits of the same
item race at the store and the last writer wins.
"""
from typing import Any, Awaitable, Callable, Generic, List, Optional, Protocol, Tuple, TypeVar

from .errors import NoActiveSession, SupasyncError
from .models import Result, Session, StatusMessage
from .session_store import SessionStore, Subscription
from .tasks import TaskRunner
from .utils import get_logger

T = TypeVar("T")
P = TypeVar("P")

# (owner id, store generation, list sequence)
SyncToken = Tuple[str, int, int]


class ResourceAdapter(Protocol[T, P]):
    kind: str
    noun: str

    async def list(self, owner_id: str) -> List[T]: ...

    async def create(self, owner_id: str, payload: P) -> T: ...

    async def update(self, owner_id: str, key: Any, payload: P) -> T: ...

    async def delete(self, owner_id: str, key: Any) -> None: ...

    def key(self, item: T) -> Any: ...

    def sort(self, items: List[T]) -> List[T]: ...


class ScopedResourceController(Generic[T, P]):
    def __init__(self, store: SessionStore, adapter: ResourceAdapter[T, P], runner: Optional[TaskRunner] = None) -> None:
        self.store = store
        self.adapter = adapter
        self.runner = runner or TaskRunner()
        self.logger = get_logger(f"supasync.{adapter.kind}")
        self.locked_out = True
        self.message: Optional[StatusMessage] = None
        self._items: List[T] = []
        self._owner_id: Optional[str] = None
        self._list_seq = 0
        self._listing = 0
        self._in_flight = 0
        self._subscription: Optional[Subscription] = None

    @property
    def items(self) -> Tuple[T, ...]:
        return tuple(self._items)

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def attached(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def attach(self) -> None:
        if self.attached:
            return
        self._subscription = self.store.subscribe(self._on_session_changed)
        self._on_session_changed(self.store.current())

    def detach(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    async def __aenter__(self) -> "ScopedResourceController[T, P]":
        self.attach()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.detach()

    def _on_session_changed(self, session: Optional[Session]) -> None:
        if session is None:
            self._reset_local_state()
            self._items = []
            self._owner_id = None
            self._list_seq += 1
            self.locked_out = True
            self.message = StatusMessage.info(f"Please log in to manage your {self.adapter.kind}.")
            self.logger.debug("Locked out, working set cleared")
            return
        if session.owner_id != self._owner_id:
            self._reset_local_state()
            self._items = []
        self._owner_id = session.owner_id
        self.locked_out = False
        self.message = None
        self._start_sync(session.owner_id)

    def _reset_local_state(self) -> None:
        pass

    def _start_sync(self, owner_id: str) -> None:
        token = self._dispatch_token(owner_id)
        self.runner.run(self._sync(token), on_error=lambda exc: self._sync_crashed(token, exc))

    def _sync_crashed(self, token: SyncToken, exc: Exception) -> None:
        self.logger.error("Listing %s crashed for owner=%s", self.adapter.kind, token[0], exc_info=exc)
        if self._is_current(token):
            self._items = []
            self.message = StatusMessage("error", f"Error fetching {self.adapter.kind}: {exc}")

    def _dispatch_token(self, owner_id: str) -> SyncToken:
        self._list_seq += 1
        self._listing += 1
        return owner_id, self.store.generation, self._list_seq

    def _is_current(self, token: SyncToken) -> bool:
        owner_id, generation, seq = token
        return owner_id == self._owner_id and generation == self.store.generation and seq == self._list_seq

    async def _sync(self, token: SyncToken) -> Result[Tuple[T, ...]]:
        owner_id = token[0]
        self.logger.debug("Listing %s for owner=%s", self.adapter.kind, owner_id)
        self._in_flight += 1
        try:
            items = await self.adapter.list(owner_id)
        except SupasyncError as exc:
            if self._is_current(token):
                self._items = []
                self.message = StatusMessage("error", f"Error fetching {self.adapter.kind}: {exc.message}")
            return Result.failure(exc)
        finally:
            self._in_flight -= 1
            self._listing -= 1
        if not self._is_current(token):
            self.logger.debug("Dropping stale %s list for owner=%s", self.adapter.kind, owner_id)
            return Result.success(self.items)
        self._items = self.adapter.sort(list(items))
        self.logger.debug("Loaded %s %s for owner=%s", len(self._items), self.adapter.kind, owner_id)
        return Result.success(self.items)

    async def refresh(self) -> Result[Tuple[T, ...]]:
        session = self.store.current()
        if session is None or session.owner_id != self._owner_id:
            return self._reject(NoActiveSession())
        return await self._sync(self._dispatch_token(session.owner_id))

    def _reject(self, error: SupasyncError) -> Result:
        result = Result.failure(error)
        self.message = result.message
        return result

    async def _mutate(
        self,
        call: Callable[[str], Awaitable[Any]],
        apply: Optional[Callable[[Any], None]],
        text: Callable[[Any], str],
    ) -> Result:
        # apply=None for calls that only read, e.g. downloads
        session = self.store.current()
        if session is None:
            return self._reject(NoActiveSession())
        owner_id = session.owner_id
        self._in_flight += 1
        try:
            value = await call(owner_id)
        except SupasyncError as exc:
            self.logger.info("%s failed for owner=%s: %s", self.adapter.noun, owner_id, exc)
            return self._reject(exc)
        finally:
            self._in_flight -= 1
        if apply is not None and owner_id == self._owner_id:
            apply(value)
            if self._listing:
                # lists already in flight were taken before this change landed
                self.logger.debug("Re-listing %s after confirmed mutation", self.adapter.kind)
                self._start_sync(owner_id)
        elif apply is not None:
            self.logger.debug("Owner changed during %s mutation, result not applied", self.adapter.kind)
        result = Result.success(value, text(value))
        self.message = result.message
        return result

    def _upsert(self, item: T) -> None:
        key = self.adapter.key(item)
        for index, existing in enumerate(self._items):
            if self.adapter.key(existing) == key:
                self._items[index] = item
                return
        self._items = self.adapter.sort(self._items + [item])

    def _remove(self, key: Any) -> None:
        self._items = [item for item in self._items if self.adapter.key(item) != key]

    async def create(self, payload: P) -> Result[T]:
        return await self._mutate(
            lambda owner_id: self.adapter.create(owner_id, payload),
            self._upsert,
            lambda _item: f"{self.adapter.noun} created successfully!",
        )

    async def update(self, key: Any, payload: P) -> Result[T]:
        return await self._mutate(
            lambda owner_id: self.adapter.update(owner_id, key, payload),
            self._upsert,
            lambda _item: f"{self.adapter.noun} updated successfully!",
        )

    async def delete(self, key: Any) -> Result[None]:
        return await self._mutate(
            lambda owner_id: self.adapter.delete(owner_id, key),
            lambda _none: self._remove(key),
            lambda _none: f"{self.adapter.noun} deleted successfully!",
        )
