"""Metadata relay client: system-hash records keyed by address."""

import logging
from typing import Dict, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from common.constants import METADATA_MAP_TIMEOUT_SECONDS
from common.types import Address, MetadataRecord
from drive.exceptions import MetadataRelayError
from drive.relay.session import RelaySession, format_error
from drive.schemas import SystemHashesMapResponse, SystemHashRecord, SystemHashResponse

logger = logging.getLogger(__name__)

SAVE_PATH = '/api/v1/user-uploads/save-system-hash'
MAP_PATH = '/api/v1/user-uploads/system-hashes-map'
RECORD_PATH = '/api/v1/user-uploads/system-hash'
REMOVE_PATH = '/api/v1/user-uploads/remove-system-hash'


def parse_records(raw_map: Dict[str, Dict]) -> Dict[Address, MetadataRecord]:
    """
    Validate a raw address → record map, skipping entries that do not parse.

    Args:
        raw_map: Mapping as returned by the relay (records may omit their own hash)

    Returns:
        Mapping of address to domain record
    """
    records = {}
    for address, raw in raw_map.items():
        if not isinstance(raw, dict):
            continue
        try:
            records[address] = SystemHashRecord.model_validate({'hash': address, **raw}).to_domain()
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed metadata record [address={address}]: {e}")
    return records


class MetadataRelayClient:
    """
    Remote, eventually consistent source of truth for metadata records.

    Every method raises on failure; MetadataStore decides what is fatal.
    """

    def __init__(self, session: RelaySession):
        self.session = session

    async def get_record(self, address: Address) -> Optional[MetadataRecord]:
        """
        Fetch one record.

        Returns:
            The record, or None if the relay does not know the address

        Raises:
            MetadataRelayError: On error status or malformed response
            NetworkUnavailableError: On transport failure
        """
        response = await self.session.request('GET', f"{RECORD_PATH}/{quote(address, safe='')}")
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise MetadataRelayError(f"Failed to get metadata: {format_error(response)}")

        try:
            result = SystemHashResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MetadataRelayError(f"Failed to get metadata: invalid response ({e})") from e

        return result.data.to_domain() if result.data else None

    async def put_record(self, record: MetadataRecord) -> None:
        """
        Save one record.

        Raises:
            MetadataRelayError: On error status
            NetworkUnavailableError: On transport failure
        """
        payload = SystemHashRecord.from_domain(record).to_wire()
        response = await self.session.request('POST', SAVE_PATH, json=payload)
        if not response.is_success:
            raise MetadataRelayError(f"Failed to save file metadata: {format_error(response)}")
        logger.debug(f"File metadata saved [address={record.address}]")

    async def delete_record(self, address: Address) -> None:
        """
        Delete one record.

        Raises:
            MetadataRelayError: On error status other than 404
            NetworkUnavailableError: On transport failure
        """
        response = await self.session.request('DELETE', f"{REMOVE_PATH}/{quote(address, safe='')}")
        if response.status_code == 404:
            return
        if not response.is_success:
            raise MetadataRelayError(f"Failed to remove file metadata: {format_error(response)}")

    async def fetch_all(self) -> Dict[Address, MetadataRecord]:
        """
        Fetch the full address → record map.

        Raises:
            MetadataRelayError: On error status or malformed response
            NetworkUnavailableError: On transport failure
        """
        response = await self.session.request('GET', MAP_PATH, timeout=METADATA_MAP_TIMEOUT_SECONDS)
        if not response.is_success:
            raise MetadataRelayError(f"Failed to fetch system hashes map: {format_error(response)}")

        try:
            result = SystemHashesMapResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MetadataRelayError(f"Failed to fetch system hashes map: invalid response ({e})") from e

        records = parse_records(result.system_hashes)
        logger.debug(f"System hash map retrieved [entries={len(records)}]")
        return records

    async def list_records_for_owner(self, owner: str) -> List[MetadataRecord]:
        """List every record saved under the given owner."""
        records = await self.fetch_all()
        return [record for record in records.values() if record.owner == owner]
