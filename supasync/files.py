import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, List, Optional

from .capabilities import ObjectStore
from .controller import ScopedResourceController
from .errors import LocalFileError, NoActiveSession, NotFound, SupasyncError
from .models import FilePayload, Result, StoredFile, storage_path
from .session_store import SessionStore
from .tasks import TaskRunner


class FileAdapter:
    kind = "files"
    noun = "File"

    def __init__(self, objects: ObjectStore) -> None:
        self.objects = objects

    async def list(self, owner_id: str) -> List[StoredFile]:
        rows = await self.objects.list(owner_id)
        return [StoredFile.from_row(owner_id, row) for row in rows]

    async def create(self, owner_id: str, payload: FilePayload) -> StoredFile:
        path = storage_path(owner_id, payload.name)
        await self.objects.upload(path, payload.data, overwrite=False, content_type=payload.content_type)
        return self._confirmed(owner_id, payload.name, payload)

    async def update(self, owner_id: str, key: Any, payload: FilePayload) -> StoredFile:
        path = storage_path(owner_id, key)
        await self.objects.upload(path, payload.data, overwrite=True, content_type=payload.content_type)
        return self._confirmed(owner_id, key, payload)

    async def delete(self, owner_id: str, key: Any) -> None:
        path = storage_path(owner_id, key)
        removed = await self.objects.remove([path])
        if path not in removed:
            raise NotFound(f"File '{key}' not found")

    async def download(self, owner_id: str, name: str) -> bytes:
        return await self.objects.download(storage_path(owner_id, name))

    def key(self, item: StoredFile) -> Any:
        return item.name

    def sort(self, items: List[StoredFile]) -> List[StoredFile]:
        return sorted(items, key=lambda item: item.name)

    def _confirmed(self, owner_id: str, name: str, payload: FilePayload) -> StoredFile:
        now = datetime.now(timezone.utc).isoformat()
        metadata = {"size": payload.size, "mimetype": payload.content_type}
        return StoredFile(
            name=name,
            owner_id=owner_id,
            size=payload.size,
            created_at=now,
            updated_at=now,
            mimetype=payload.content_type,
            metadata=metadata,
        )


@dataclass
class UploadProgress:
    """Display-only upload percentage.

    Uploads are a single atomic put with no transfer events, so this only
    ever moves 0 -> 100 on success and back to 0 on failure.
    """

    name: Optional[str] = None
    percent: int = 0
    active: bool = False

    def start(self, name: str) -> None:
        self.name = name
        self.percent = 0
        self.active = True

    def finish(self, ok: bool) -> None:
        self.percent = 100 if ok else 0
        self.active = False


class FilesController(ScopedResourceController[StoredFile, FilePayload]):
    def __init__(
        self,
        store: SessionStore,
        objects: ObjectStore,
        runner: Optional[TaskRunner] = None,
        tmp_dir: Optional[str] = None,
    ) -> None:
        self.file_adapter = FileAdapter(objects)
        super().__init__(store, self.file_adapter, runner)
        self.objects = objects
        self.progress = UploadProgress()
        self.tmp_dir = tmp_dir

    def _reset_local_state(self) -> None:
        self.progress = UploadProgress()

    async def upload(self, payload: FilePayload, overwrite: bool = False) -> Result[StoredFile]:
        progress = self.progress
        progress.start(payload.name)

        async def work(owner_id: str) -> StoredFile:
            if overwrite:
                return await self.file_adapter.update(owner_id, payload.name, payload)
            return await self.file_adapter.create(owner_id, payload)

        result = await self._mutate(
            work,
            self._upsert,
            lambda _item: f"File '{payload.name}' uploaded successfully!",
        )
        progress.finish(result.ok)
        return result

    async def upload_path(self, path: str, name: Optional[str] = None, overwrite: bool = False) -> Result[StoredFile]:
        try:
            payload = FilePayload.from_path(path, name)
        except OSError as exc:
            return self._reject(LocalFileError(f"Could not read {path}: {exc.strerror or exc}"))
        return await self.upload(payload, overwrite=overwrite)

    async def download(self, name: str) -> Result[bytes]:
        return await self._mutate(
            lambda owner_id: self.file_adapter.download(owner_id, name),
            None,
            lambda _data: f"File '{name}' downloaded.",
        )

    @asynccontextmanager
    async def download_blob(self, name: str) -> AsyncIterator[str]:
        """Yield a temporary file holding the downloaded object.

        The file is removed when the block exits, whether it completes or
        raises. A failed download raises the result's error.
        """
        result = await self.download(name)
        if not result.ok:
            raise result.error
        fd, tmp_path = tempfile.mkstemp(prefix="supasync-", dir=self.tmp_dir)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(result.value or b"")
            yield tmp_path
        finally:
            try:
                os.remove(tmp_path)
            except FileNotFoundError:
                pass

    async def save_download(self, name: str, dest: str) -> Result[str]:
        try:
            async with self.download_blob(name) as tmp_path:
                shutil.copyfile(tmp_path, dest)
        except SupasyncError as exc:
            return self._reject(exc)
        except OSError as exc:
            return self._reject(LocalFileError(f"Could not save '{name}' to {dest}: {exc.strerror or exc}"))
        result = Result.success(dest, f"File '{name}' downloaded to {dest}")
        self.message = result.message
        return result

    def public_url(self, name: str) -> Result[str]:
        session = self.store.current()
        if session is None:
            return self._reject(NoActiveSession())
        return Result.success(self.objects.get_public_url(storage_path(session.owner_id, name)))
