import mimetypes
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from .errors import SupasyncError
from .utils import format_bytes

T = TypeVar("T")

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class User:
    id: str
    email: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "User":
        return cls(id=str(data.get("id")), email=data.get("email"))


@dataclass
class Session:
    access_token: str
    refresh_token: str
    expires_at: int
    user: User
    token_type: str = "bearer"

    @property
    def owner_id(self) -> str:
        return self.user.id

    def expired(self, leeway: int = 10) -> bool:
        return self.expires_at <= int(time.time()) + leeway

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Session":
        expires_at = data.get("expires_at")
        if expires_at is None:
            expires_at = int(time.time()) + int(data.get("expires_in", 3600))
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_at=int(expires_at),
            user=User.from_api(data.get("user") or {}),
            token_type=data.get("token_type", "bearer"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type,
            "user": {"id": self.user.id, "email": self.user.email},
        }


@dataclass
class Note:
    id: Any
    user_id: str
    title: str
    content: str
    created_at: Optional[str] = None

    @property
    def created(self) -> datetime:
        return parse_timestamp(self.created_at)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Note":
        return cls(
            id=row.get("id"),
            user_id=str(row.get("user_id")),
            title=row.get("title") or "",
            content=row.get("content") or "",
            created_at=row.get("created_at"),
        )


@dataclass
class NoteDraft:
    title: str
    content: str

    def to_row(self) -> Dict[str, Any]:
        return {"title": self.title, "content": self.content}


@dataclass
class StoredFile:
    name: str
    owner_id: str
    size: int = 0
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    mimetype: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return storage_path(self.owner_id, self.name)

    @property
    def size_label(self) -> str:
        return format_bytes(self.size)

    @classmethod
    def from_row(cls, owner_id: str, row: Dict[str, Any]) -> "StoredFile":
        metadata = row.get("metadata") or {}
        return cls(
            name=row.get("name") or "",
            owner_id=owner_id,
            size=int(metadata.get("size") or 0),
            id=row.get("id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            mimetype=metadata.get("mimetype"),
            metadata=metadata,
        )


def storage_path(owner_id: str, name: str) -> str:
    return f"{owner_id}/{name}"


@dataclass
class FilePayload:
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str, name: Optional[str] = None) -> "FilePayload":
        filename = name or os.path.basename(path)
        with open(path, "rb") as f:
            data = f.read()
        content_type, _ = mimetypes.guess_type(filename)
        return cls(name=filename, data=data, content_type=content_type)


class SignUpOutcome(str, Enum):
    SIGNED_IN = "signed_in"
    PENDING_CONFIRMATION = "pending_confirmation"


@dataclass
class StatusMessage:
    kind: str
    text: str

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    @classmethod
    def success(cls, text: str) -> "StatusMessage":
        return cls("success", text)

    @classmethod
    def error(cls, text: str) -> "StatusMessage":
        return cls("error", f"Error: {text}")

    @classmethod
    def info(cls, text: str) -> "StatusMessage":
        return cls("info", text)


@dataclass
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[SupasyncError] = None
    message: Optional[StatusMessage] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None, text: Optional[str] = None) -> "Result[T]":
        return cls(value=value, message=StatusMessage.success(text) if text else None)

    @classmethod
    def failure(cls, error: SupasyncError) -> "Result[T]":
        return cls(error=error, message=StatusMessage.error(error.message))


@dataclass
class EditingDraft:
    note: Optional[Note] = None
    title: str = ""
    content: str = ""

    @property
    def editing(self) -> bool:
        return self.note is not None

    def payload(self) -> NoteDraft:
        return NoteDraft(title=self.title, content=self.content)
