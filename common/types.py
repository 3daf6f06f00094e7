"""Shared data type definitions (BlobEntry, DirectoryMember, MetadataRecord, etc.)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from common.constants import DEFAULT_CONTENT_TYPE, DEFAULT_OWNER, EMPTY_DIRECTORY_MARKER


Address = str


@dataclass(frozen=True)
class BlobEntry:
    """
    A single uploaded blob.
    """
    address: Address
    size: int
    content_kind: str
    encrypted: bool


@dataclass(frozen=True)
class DirectoryMember:
    """
    One file inside a directory snapshot.

    Members never carry their own address; the snapshot address covers them.
    """
    relative_path: str
    display_name: str
    size: int
    content_kind: str = DEFAULT_CONTENT_TYPE
    encrypted: bool = False

    @property
    def final_segment(self) -> str:
        return final_segment(self.relative_path)

    @property
    def is_placeholder(self) -> bool:
        return self.final_segment == EMPTY_DIRECTORY_MARKER


@dataclass(frozen=True)
class DirectorySnapshot:
    """
    Immutable, fully enumerated member list published under one address.
    """
    address: Address
    display_name: str
    created_at: datetime
    members: Tuple[DirectoryMember, ...] = ()

    @property
    def visible_members(self) -> Tuple[DirectoryMember, ...]:
        return tuple(m for m in self.members if not m.is_placeholder)

    @property
    def total_size(self) -> int:
        return sum(m.size for m in self.visible_members)

    @property
    def is_placeholder(self) -> bool:
        return bool(self.members) and not self.visible_members


@dataclass(frozen=True)
class MetadataRecord:
    """
    Descriptive record for a standalone file or a directory snapshot, keyed by address.

    Records are never edited in place; a changed record is a new instance.
    """
    address: Address
    display_name: str
    size: int = 0
    content_kind: str = DEFAULT_CONTENT_TYPE
    encrypted: bool = False
    uploaded_at: Optional[datetime] = None
    original_name: Optional[str] = None
    owner: str = DEFAULT_OWNER
    is_directory: bool = False
    members: Tuple[DirectoryMember, ...] = ()
    relay_url: Optional[str] = None

    def to_snapshot(self) -> DirectorySnapshot:
        return DirectorySnapshot(
            address=self.address,
            display_name=self.display_name,
            created_at=self.uploaded_at or datetime.now(),
            members=self.members,
        )


@dataclass(frozen=True)
class NavigationFrame:
    """Breadcrumb stack entry."""
    address: Address
    display_name: str


@dataclass(frozen=True)
class FileEntry:
    """
    One row of the root listing: a pinned address joined with its metadata.
    """
    address: Address
    name: str
    original_name: str
    size: int
    content_kind: str
    encrypted: bool
    uploaded_at: datetime
    relay_url: str
    is_directory: bool = False
    members: Tuple[DirectoryMember, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class ProgressEvent:
    """Transfer progress; total is 0 when unknown."""
    loaded: int
    total: int

    @property
    def progress(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.loaded / self.total * 100)


@dataclass(frozen=True)
class StatusEvent:
    """Status change notification (checking, encrypting, uploading, ...)."""
    status: str
    message: str
    address: Optional[Address] = None


def final_segment(path: str) -> str:
    """Last '/'-separated component of a relative path."""
    return path.rstrip('/').rsplit('/', 1)[-1]
