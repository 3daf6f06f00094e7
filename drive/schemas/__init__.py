"""Pydantic schemas for relay requests and responses."""

from drive.schemas.relay import (
    UploadedFile,
    UploadResponse,
    DirectoryUploadResponse,
    PinsResponse,
    MemberWire,
    SystemHashRecord,
    SystemHashesMapResponse,
    SystemHashResponse,
)

__all__ = [
    "UploadedFile",
    "UploadResponse",
    "DirectoryUploadResponse",
    "PinsResponse",
    "MemberWire",
    "SystemHashRecord",
    "SystemHashesMapResponse",
    "SystemHashResponse",
]
