"""HTTP clients for the relay (storage network and metadata)."""

from drive.relay.session import RelaySession, format_error
from drive.relay.storage_client import StorageClient
from drive.relay.metadata_client import MetadataRelayClient

__all__ = [
    "RelaySession",
    "format_error",
    "StorageClient",
    "MetadataRelayClient",
]
