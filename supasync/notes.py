from typing import Any, List, Optional

from .capabilities import RecordStore
from .controller import ScopedResourceController
from .errors import ValidationError
from .models import EditingDraft, Note, NoteDraft, Result
from .session_store import SessionStore
from .tasks import TaskRunner


class NoteAdapter:
    kind = "notes"
    noun = "Note"

    def __init__(self, records: RecordStore) -> None:
        self.records = records

    async def list(self, owner_id: str) -> List[Note]:
        rows = await self.records.list(owner_id, ("created_at", False))
        return [Note.from_row(row) for row in rows]

    async def create(self, owner_id: str, payload: NoteDraft) -> Note:
        record = dict(payload.to_row(), user_id=owner_id)
        return Note.from_row(await self.records.insert(record))

    async def update(self, owner_id: str, key: Any, payload: NoteDraft) -> Note:
        return Note.from_row(await self.records.update(key, owner_id, payload.to_row()))

    async def delete(self, owner_id: str, key: Any) -> None:
        await self.records.delete(key, owner_id)

    def key(self, item: Note) -> Any:
        return item.id

    def sort(self, items: List[Note]) -> List[Note]:
        return sorted(items, key=lambda note: note.created, reverse=True)


class NotesController(ScopedResourceController[Note, NoteDraft]):
    """Notes of the signed-in user plus the single create/edit form.

    The ``title``/``content`` fields of :attr:`draft` feed ``create`` while
    no note is being edited and ``update`` while one is.
    """

    def __init__(self, store: SessionStore, records: RecordStore, runner: Optional[TaskRunner] = None) -> None:
        super().__init__(store, NoteAdapter(records), runner)
        self.draft = EditingDraft()

    def _reset_local_state(self) -> None:
        self.draft = EditingDraft()

    def start_edit(self, note: Note) -> None:
        self.draft = EditingDraft(note=note, title=note.title, content=note.content)
        self.message = None

    def cancel_edit(self) -> None:
        self.draft = EditingDraft()
        self.message = None

    def set_fields(self, title: Optional[str] = None, content: Optional[str] = None) -> None:
        if title is not None:
            self.draft.title = title
        if content is not None:
            self.draft.content = content

    async def submit(self) -> Result[Note]:
        draft = self.draft
        if not draft.title.strip() or not draft.content.strip():
            return self._reject(ValidationError("Title and content are required."))
        if draft.note is None:
            result = await self.create(draft.payload())
        else:
            result = await self.update(draft.note.id, draft.payload())
        # a session change meanwhile has already replaced the draft
        if result.ok and self.draft is draft:
            self.draft = EditingDraft()
        return result
