"""
Copy-on-write directory synthesis.

A directory snapshot is immutable: every mutation downloads the surviving
members from the current address, uploads survivors plus new files as a
brand-new snapshot, moves the pointers over and retires the old snapshot in
the background.

    PREPARE -> FILTER_MEMBERS -> FETCH_REMAINING_MEMBERS -> REBUILD
            -> SWAP_POINTER -> CLEANUP_OLD
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

from common.constants import (
    DEFAULT_OWNER,
    EMPTY_DIRECTORY_MARKER,
    EMPTY_DIRECTORY_MARKER_CONTENT,
    FORWARD_HISTORY_LIMIT,
)
from common.types import Address, DirectoryMember, MetadataRecord, final_segment
from drive.credentials import CredentialProvider
from drive.events import EventHub
from drive.exceptions import (
    CredentialMissingError,
    DirectoryNotFoundError,
    DriveException,
    MemberNotFoundError,
    MissingSecretError,
)
from drive.metadata_store import MetadataStore
from drive.navigation import NavigationState
from drive.relay.storage_client import StorageClient
from drive.transfer import TransferPipeline
from drive.utils import guess_content_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewFile:
    """File to place into a directory snapshot."""
    relative_path: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def kind(self) -> str:
        return self.content_type or guess_content_type(self.relative_path)


def filter_member(members: Sequence[DirectoryMember], target: str) -> List[DirectoryMember]:
    """
    Drop exactly one member matching target.

    An exact relative path match wins; otherwise the first member whose final
    segment equals the target's final segment is dropped.

    Raises:
        MemberNotFoundError: If nothing matches
    """
    for i, member in enumerate(members):
        if member.relative_path == target:
            return list(members[:i]) + list(members[i + 1:])

    segment = final_segment(target)
    for i, member in enumerate(members):
        if member.final_segment == segment:
            return list(members[:i]) + list(members[i + 1:])

    raise MemberNotFoundError(f"File not found in directory: {target}")


class DirectorySynthesizer:
    """
    Rebuilds directory snapshots and keeps every pointer to them current.

    Synthesis on one folder is serialized with a per-address lock. A mutation
    waiting behind another follows the forward pointer left by SWAP_POINTER so
    that it applies to the newest snapshot.
    """

    def __init__(
        self,
        transfer: TransferPipeline,
        metadata: MetadataStore,
        navigation: NavigationState,
        storage: StorageClient,
        credentials: CredentialProvider,
        events: Optional[EventHub] = None,
        owner: str = DEFAULT_OWNER,
    ):
        self.transfer = transfer
        self.metadata = metadata
        self.navigation = navigation
        self.storage = storage
        self.credentials = credentials
        self.events = events or EventHub()
        self.owner = owner

        self._locks: Dict[Address, asyncio.Lock] = {}
        self._forward: Dict[Address, Address] = {}
        self._cleanup_tasks: Set[asyncio.Task] = set()

    def latest_address(self, address: Address) -> Address:
        """Follow forward pointers to the newest snapshot of a folder."""
        seen = set()
        while address in self._forward and address not in seen:
            seen.add(address)
            address = self._forward[address]
        return address

    def _lock_for(self, address: Address) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        return lock

    async def add_files(self, address: Address, files: Sequence[NewFile]) -> MetadataRecord:
        """Add (or overwrite by path) files in a directory."""
        return await self.synthesize(address, add=files)

    async def remove_file(self, address: Address, relative_path: str) -> MetadataRecord:
        """Remove one file from a directory."""
        return await self.synthesize(address, remove=relative_path)

    async def synthesize(
        self,
        address: Address,
        add: Sequence[NewFile] = (),
        remove: Optional[str] = None,
    ) -> MetadataRecord:
        """
        Produce a new snapshot of a directory with the given delta applied.

        Args:
            address: Address of the directory (a retired address is followed forward)
            add: Files to add; a new file replaces a survivor with the same path
            remove: Relative path (or bare file name) of a member to drop

        Returns:
            Metadata record of the new snapshot

        Raises:
            CredentialMissingError: If no credential is configured
            MissingSecretError: If the directory is encrypted and no secret is set
            DirectoryNotFoundError: If the address is not a known directory
            MemberNotFoundError: If remove matches no member
            UploadRejectedError: If the rebuilt snapshot is refused
            NetworkUnavailableError: On transport failure during the rebuild
        """
        while True:
            target = self.latest_address(address)
            async with self._lock_for(target):
                if self.latest_address(address) != target:
                    continue
                return await self._synthesize_locked(target, add, remove)

    async def _synthesize_locked(
        self,
        address: Address,
        add: Sequence[NewFile],
        remove: Optional[str],
    ) -> MetadataRecord:
        record = await self._prepare(address)

        members = [m for m in record.members if not m.is_placeholder]
        if remove is not None:
            members = filter_member(members, remove)

        incoming = {f.relative_path: f for f in add}
        survivors = await self._fetch_survivors(
            record, [m for m in members if m.relative_path not in incoming]
        )

        new_record = await self._rebuild(record, survivors, list(incoming.values()))
        if new_record.address == address:
            logger.info(f"Synthesis produced the same snapshot [address={address}]")
            await self.metadata.put(new_record)
            return new_record

        await self._swap_pointer(address, new_record)
        self._schedule_cleanup(address)
        return new_record

    async def _prepare(self, address: Address) -> MetadataRecord:
        if not self.credentials.has_usable_credential():
            raise CredentialMissingError("Auth token is required. Please set it with: login <token>")

        record = await self.metadata.resolve(address)
        if record is None or not record.is_directory:
            raise DirectoryNotFoundError(f"Directory not found: {address}")

        if record.encrypted and not self.credentials.encryption_secret():
            raise MissingSecretError("Encryption token is required to modify an encrypted directory")

        return record

    async def _fetch_survivors(
        self,
        record: MetadataRecord,
        members: Sequence[DirectoryMember],
    ) -> List[NewFile]:
        survivors = []
        for member in members:
            try:
                data = await self.transfer.download_member(
                    record.address,
                    member.relative_path,
                    encrypted=record.encrypted or member.encrypted,
                    size_hint=member.size,
                )
            except DriveException as e:
                logger.warning(
                    f"Dropping member that could not be fetched "
                    f"[directory={record.address}, path={member.relative_path}]: {e}"
                )
                continue
            survivors.append(NewFile(member.relative_path, data, member.content_kind))
        return survivors

    async def _rebuild(
        self,
        record: MetadataRecord,
        survivors: Sequence[NewFile],
        new_files: Sequence[NewFile],
    ) -> MetadataRecord:
        files: Dict[str, NewFile] = {f.relative_path: f for f in survivors}
        for new_file in new_files:
            files[new_file.relative_path] = new_file

        if not files:
            files[EMPTY_DIRECTORY_MARKER] = NewFile(
                EMPTY_DIRECTORY_MARKER, EMPTY_DIRECTORY_MARKER_CONTENT, 'text/plain'
            )

        self.events.status('uploading', f"Rebuilding directory {record.display_name}...", record.address)
        new_address = await self.transfer.upload_batch(
            [(path, f.data) for path, f in files.items()],
            record.display_name,
            encrypt=record.encrypted,
        )

        members = tuple(
            DirectoryMember(
                relative_path=path,
                display_name=final_segment(path),
                size=len(f.data),
                content_kind=f.kind,
                encrypted=record.encrypted,
            )
            for path, f in files.items()
        )
        new_record = replace(
            record,
            address=new_address,
            members=members,
            uploaded_at=datetime.now(),
            relay_url=self.storage.content_url(new_address),
        )
        return replace(new_record, size=new_record.to_snapshot().total_size)

    def _record_forward(self, old_address: Address, new_address: Address) -> None:
        """
        Point a retired address (and everything that pointed at it) at the new snapshot.

        Chains are collapsed so every entry resolves in one step, and only the
        most recent FORWARD_HISTORY_LIMIT retirements are kept.
        """
        self._forward = {
            source: new_address if target == old_address else target
            for source, target in self._forward.items()
            if source not in (old_address, new_address)
        }
        self._forward[old_address] = new_address
        while len(self._forward) > FORWARD_HISTORY_LIMIT:
            del self._forward[next(iter(self._forward))]

    async def _swap_pointer(self, old_address: Address, new_record: MetadataRecord) -> None:
        self._record_forward(old_address, new_record.address)
        await self.metadata.put(new_record)
        self.navigation.repoint(old_address, new_record.address)
        logger.info(
            f"Directory synthesized [old={old_address}, new={new_record.address}, "
            f"members={len(new_record.members)}]"
        )

    def _schedule_cleanup(self, old_address: Address) -> None:
        task = asyncio.create_task(self._cleanup(old_address))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _cleanup(self, old_address: Address) -> None:
        try:
            await self.storage.unpin(old_address)
        except DriveException as e:
            logger.warning(f"Failed to unpin superseded snapshot [address={old_address}]: {e}")
        await self.metadata.remove(old_address)

        lock = self._locks.get(old_address)
        if lock is not None and not lock.locked():
            del self._locks[old_address]

    async def create_directory(
        self,
        name: str,
        files: Sequence[NewFile],
        encrypt: bool = False,
    ) -> MetadataRecord:
        """
        Upload a brand-new directory snapshot and record it.

        Args:
            name: Display name of the directory
            files: Initial contents; empty creates a placeholder snapshot
            encrypt: Encrypt every member

        Returns:
            Metadata record of the new directory
        """
        files = list(files) or [
            NewFile(EMPTY_DIRECTORY_MARKER, EMPTY_DIRECTORY_MARKER_CONTENT, 'text/plain')
        ]
        address = await self.transfer.upload_batch(
            [(f.relative_path, f.data) for f in files], name, encrypt=encrypt
        )

        members = tuple(
            DirectoryMember(
                relative_path=f.relative_path,
                display_name=final_segment(f.relative_path),
                size=len(f.data),
                content_kind=f.kind,
                encrypted=encrypt,
            )
            for f in files
        )
        record = MetadataRecord(
            address=address,
            display_name=name,
            content_kind='inode/directory',
            encrypted=encrypt,
            uploaded_at=datetime.now(),
            original_name=name,
            owner=self.owner,
            is_directory=True,
            members=members,
            relay_url=self.storage.content_url(address),
        )
        record = replace(record, size=record.to_snapshot().total_size)
        await self.metadata.put(record)
        logger.info(f"Directory created [name={name}, address={address}, members={len(members)}]")
        return record

    async def drain(self) -> None:
        """Wait for background cleanup of retired snapshots."""
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)
