"""Pydantic schemas for relay requests and responses."""

import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from common.constants import DEFAULT_CONTENT_TYPE, DEFAULT_OWNER
from common.types import DirectoryMember, MetadataRecord

logger = logging.getLogger(__name__)


class UploadedFile(BaseModel):
    """File descriptor returned by a single upload."""
    hash: str
    name: Optional[str] = None
    size: Optional[int] = None


class UploadResponse(BaseModel):
    """Response model for POST /api/v1/ipfs/upload."""
    success: bool = False
    file: Optional[UploadedFile] = None
    error: Optional[str] = None


class DirectoryUploadResponse(BaseModel):
    """Response model for POST /api/v1/ipfs/upload-directory."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    directory_cid: Optional[str] = Field(default=None, alias="directoryCid")
    file_count: int = Field(default=0, alias="fileCount")
    error: Optional[str] = None


class PinsResponse(BaseModel):
    """Response model for POST /api/v1/ipfs/pins/ls."""
    pins: Dict[str, Dict[str, Any]] = {}


class MemberWire(BaseModel):
    """Directory member as stored by the relay."""
    model_config = ConfigDict(populate_by_name=True)

    relative_path: str = Field(alias="path")
    display_name: Optional[str] = Field(default=None, alias="name")
    size: int = 0
    content_kind: str = Field(default=DEFAULT_CONTENT_TYPE, alias="type")
    encrypted: bool = Field(default=False, alias="isEncrypted")

    def to_domain(self) -> DirectoryMember:
        return DirectoryMember(
            relative_path=self.relative_path,
            display_name=self.display_name or self.relative_path.rsplit('/', 1)[-1],
            size=self.size,
            content_kind=self.content_kind,
            encrypted=self.encrypted,
        )

    @classmethod
    def from_domain(cls, member: DirectoryMember) -> "MemberWire":
        return cls(
            relative_path=member.relative_path,
            display_name=member.display_name,
            size=member.size,
            content_kind=member.content_kind,
            encrypted=member.encrypted,
        )


def from_millis(value: Optional[int]) -> Optional[datetime]:
    """Convert epoch milliseconds to a datetime, None if missing or out of range."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(value / 1000)
    except (ValueError, OverflowError, OSError):
        logger.debug(f"Ignoring out-of-range timestamp [value={value}]")
        return None


class SystemHashRecord(BaseModel):
    """
    Metadata record in the relay's camelCase wire format.

    The ``files`` list has historically been written both as an array and as a
    JSON-encoded string; both collapse to a list here.
    """
    model_config = ConfigDict(populate_by_name=True)

    hash: str
    user_address: str = Field(default=DEFAULT_OWNER, alias="userAddress")
    timestamp: Optional[int] = None
    file_name: Optional[str] = Field(default=None, alias="fileName")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    original_name: Optional[str] = Field(default=None, alias="originalName")
    name: Optional[str] = None
    file_size: int = Field(default=0, alias="fileSize")
    is_encrypted: bool = Field(default=False, alias="isEncrypted")
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE, alias="contentType")
    relay_url: Optional[str] = Field(default=None, alias="relayUrl")
    uploaded_at: Optional[int] = Field(default=None, alias="uploadedAt")
    is_directory: bool = Field(default=False, alias="isDirectory")
    file_count: int = Field(default=0, alias="fileCount")
    files: List[MemberWire] = []

    @field_validator("files", mode="before")
    @classmethod
    def normalize_files(cls, value: Any) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning("Discarding undecodable string-encoded member list")
                return []
        if not isinstance(value, list):
            return []
        return [
            item for item in value
            if isinstance(item, MemberWire) or (isinstance(item, dict) and item.get("path"))
        ]

    @field_validator("file_size", "file_count", mode="before")
    @classmethod
    def coerce_int(cls, value: Any) -> int:
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    def best_display_name(self) -> Optional[str]:
        return self.display_name or self.file_name or self.original_name or self.name

    def to_domain(self) -> MetadataRecord:
        uploaded = self.uploaded_at or self.timestamp
        return MetadataRecord(
            address=self.hash,
            display_name=self.best_display_name() or self.hash,
            size=self.file_size,
            content_kind=self.content_type,
            encrypted=self.is_encrypted,
            uploaded_at=from_millis(uploaded),
            original_name=self.original_name,
            owner=self.user_address,
            is_directory=self.is_directory,
            members=tuple(m.to_domain() for m in self.files),
            relay_url=self.relay_url,
        )

    @classmethod
    def from_domain(cls, record: MetadataRecord) -> "SystemHashRecord":
        uploaded_ms = int((record.uploaded_at.timestamp() if record.uploaded_at else time.time()) * 1000)
        return cls(
            hash=record.address,
            user_address=record.owner,
            timestamp=uploaded_ms,
            file_name=record.display_name,
            display_name=record.display_name,
            original_name=record.original_name or record.display_name,
            file_size=record.size,
            is_encrypted=record.encrypted,
            content_type=record.content_kind,
            relay_url=record.relay_url,
            uploaded_at=uploaded_ms,
            is_directory=record.is_directory,
            file_count=len(record.members),
            files=[MemberWire.from_domain(m) for m in record.members],
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SystemHashesMapResponse(BaseModel):
    """Response model for GET /api/v1/user-uploads/system-hashes-map."""
    model_config = ConfigDict(populate_by_name=True)

    system_hashes: Dict[str, Dict[str, Any]] = Field(default={}, alias="systemHashes")


class SystemHashResponse(BaseModel):
    """Response model for GET /api/v1/user-uploads/system-hash/{hash}."""
    success: bool = False
    data: Optional[SystemHashRecord] = None
