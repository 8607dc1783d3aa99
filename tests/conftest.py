import pytest

from fakes import FakeAuth, FakeObjectStore, FakeRecordStore
from supasync.files import FilesController
from supasync.notes import NotesController
from supasync.session_store import SessionStore


@pytest.fixture
def auth():
    fake = FakeAuth()
    fake.add_user("alice@example.com", "secret-a", "u1")
    fake.add_user("bob@example.com", "secret-b", "u2")
    return fake


@pytest.fixture
def store(auth):
    session_store = SessionStore(auth)
    session_store.attach()
    yield session_store
    session_store.close()


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def objects():
    return FakeObjectStore()


@pytest.fixture
def notes(store, records):
    controller = NotesController(store, records)
    controller.attach()
    yield controller
    controller.detach()


@pytest.fixture
def files(store, objects, tmp_path):
    blob_dir = tmp_path / "blobs"
    blob_dir.mkdir()
    controller = FilesController(store, objects, tmp_dir=str(blob_dir))
    controller.attach()
    yield controller
    controller.detach()
