# retrace/models.py
"""
Data model for the operation log.

An Operation is one recorded agent action: an immutable-shaped kind and
payload plus a lifecycle status that only the tracker changes.
"""
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OperationKind(str, Enum):
    """Closed set of recordable operation kinds."""
    FILE_CREATE = "file_create"
    FILE_EDIT = "file_edit"
    FILE_DELETE = "file_delete"
    FILE_RENAME = "file_rename"
    DIRECTORY_CREATE = "directory_create"
    DIRECTORY_DELETE = "directory_delete"
    BASH_COMMAND = "bash_command"
    MULTI_EDIT = "multi_edit"


class OperationStatus(str, Enum):
    """Lifecycle status of an operation."""
    PENDING = "pending"    # Recorded but not yet in effect
    ACTIVE = "active"      # Executed and currently in effect
    UNDONE = "undone"      # Reverted
    FAILED = "failed"      # The action (or its reversal) can not complete
    PARTIAL = "partial"    # Some but not all sub-steps succeeded


class CascadePolicy(str, Enum):
    """How the tracker treats dependents when undoing (dependencies when redoing)."""
    BLOCK = "block"          # Refuse until the cascading operations are handled
    CASCADE = "cascade"      # Reverse the cascading operations first
    ADVISORY = "advisory"    # Proceed alone and warn


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EditSpec(_CamelModel):
    """One exact-substring replacement."""
    old_string: Optional[str] = Field(None, description="Text the edit replaced")
    new_string: Optional[str] = Field(None, description="Text the edit inserted")
    replace_all: bool = Field(False, description="Whether every occurrence was replaced")


class FileEntry(_CamelModel):
    """A file captured before a directory was deleted."""
    path: str = Field(..., description="Absolute path, or a path relative to the directory")
    content: Optional[str] = Field(None, description="Captured file content")


class OperationPayload(_CamelModel):
    """Kind-specific fields; only those relevant to the kind are populated."""
    file_path: Optional[str] = None
    content: Optional[str] = None
    old_string: Optional[str] = None
    new_string: Optional[str] = None
    replace_all: Optional[bool] = None
    edits: Optional[List[EditSpec]] = None
    old_path: Optional[str] = None
    new_path: Optional[str] = None
    dir_path: Optional[str] = None
    files: Optional[List[FileEntry]] = None
    command: Optional[str] = None
    output: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


_timestamp_lock = threading.Lock()
_last_timestamp: Optional[datetime] = None


def next_timestamp() -> datetime:
    """Return a UTC timestamp strictly later than any previously returned."""
    global _last_timestamp
    with _timestamp_lock:
        now = datetime.now(timezone.utc)
        if _last_timestamp is not None and now <= _last_timestamp:
            now = _last_timestamp + timedelta(microseconds=1)
        _last_timestamp = now
        return now


def generate_operation_id() -> str:
    """Generate an opaque, unique operation id."""
    return f"op_{uuid.uuid4().hex[:16]}"


class Operation(BaseModel):
    """Record of one agent action that can be undone or redone."""
    id: str = Field(default_factory=generate_operation_id)
    kind: OperationKind
    payload: OperationPayload = Field(default_factory=OperationPayload)
    timestamp: datetime = Field(default_factory=next_timestamp)
    status: OperationStatus = OperationStatus.ACTIVE
    error: Optional[str] = None
    depends_on: List[str] = Field(default_factory=list)
    dependents: List[str] = Field(default_factory=list)
    message_id: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def can_undo(self) -> bool:
        return self.status in (OperationStatus.ACTIVE, OperationStatus.PARTIAL)

    @property
    def can_redo(self) -> bool:
        return self.status == OperationStatus.UNDONE

    @property
    def paths(self) -> List[str]:
        """Normalized filesystem paths this operation touches."""
        p = self.payload
        candidates = [p.file_path, p.old_path, p.new_path, p.dir_path]
        return [os.path.normpath(c) for c in candidates if c]

    @property
    def is_directory_operation(self) -> bool:
        return self.kind in (OperationKind.DIRECTORY_CREATE, OperationKind.DIRECTORY_DELETE)

    def describe(self) -> str:
        """Get a human-readable description of the operation."""
        p = self.payload
        if self.kind == OperationKind.FILE_CREATE:
            return f"Create file: {p.file_path}"
        if self.kind == OperationKind.FILE_EDIT:
            return f"Edit file: {p.file_path}"
        if self.kind == OperationKind.MULTI_EDIT:
            return f"Multi-edit file: {p.file_path} ({len(p.edits or [])} changes)"
        if self.kind == OperationKind.FILE_DELETE:
            return f"Delete file: {p.file_path}"
        if self.kind == OperationKind.FILE_RENAME:
            return f"Rename: {p.old_path} -> {p.new_path}"
        if self.kind == OperationKind.DIRECTORY_CREATE:
            return f"Create directory: {p.dir_path}"
        if self.kind == OperationKind.DIRECTORY_DELETE:
            return f"Delete directory: {p.dir_path}"
        return f"Run command: {p.command}"

    def add_dependency(self, other: 'Operation') -> None:
        """Record that this operation depends on an earlier one."""
        if other.id == self.id:
            return
        if other.id not in self.depends_on:
            self.depends_on.append(other.id)
        if self.id not in other.dependents:
            other.dependents.append(self.id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the operation to a JSON-compatible dictionary."""
        data = {
            "id": self.id,
            "kind": self.kind.value,
            "payload": self.payload.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "dependsOn": list(self.depends_on),
            "dependents": list(self.dependents),
        }
        if self.error is not None:
            data["error"] = self.error
        if self.message_id is not None:
            data["messageId"] = self.message_id
        if self.session_id is not None:
            data["sessionId"] = self.session_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Operation':
        """Create an operation from its dictionary form."""
        status = data.get("status")
        if status is None:
            # Older logs only carried an undone flag
            status = OperationStatus.UNDONE if data.get("undone") else OperationStatus.ACTIVE

        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return cls(
            id=data["id"],
            kind=data.get("kind", data.get("type")),
            payload=OperationPayload.model_validate(data.get("payload", data.get("data")) or {}),
            timestamp=timestamp,
            status=status,
            error=data.get("error"),
            depends_on=list(data.get("dependsOn") or []),
            dependents=list(data.get("dependents", data.get("dependencies")) or []),
            message_id=data.get("messageId"),
            session_id=data.get("sessionId"),
        )
