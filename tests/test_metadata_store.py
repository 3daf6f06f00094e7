"""Tests for the local cache document, record merging and stale-while-revalidate."""

import json
from datetime import datetime

import pytest

from common.types import DirectoryMember, MetadataRecord
from drive.credentials import Credential, CredentialProvider
from drive.metadata_store import LocalMetadataCache, MetadataStore, merge_records
from drive.relay.metadata_client import MetadataRelayClient, parse_records
from drive.relay.session import RelaySession
from drive.schemas import SystemHashRecord
from fixtures.fake_relay import RELAY_URL, TOKEN


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_store(relay, tmp_path, clock=None, staleness=300):
    credentials = CredentialProvider(Credential(bearer_token=TOKEN))
    session = RelaySession(RELAY_URL, credentials, client=relay.client())
    cache = LocalMetadataCache(str(tmp_path / 'cache.json'), clock=clock or FakeClock())
    return MetadataStore(MetadataRelayClient(session), cache, staleness_seconds=staleness)


def record(address='QmFile', **kwargs):
    kwargs.setdefault('display_name', 'file.txt')
    kwargs.setdefault('uploaded_at', datetime(2024, 1, 1, 12, 0, 0))
    return MetadataRecord(address=address, **kwargs)


def test_merge_prefers_remote_fields_and_local_members():
    local = record(display_name='old', members=(DirectoryMember('a.txt', 'a.txt', 1),), is_directory=True)
    remote = record(display_name='new', size=42, is_directory=True)

    merged = merge_records(local, remote)

    assert merged.display_name == 'new'
    assert merged.size == 42
    assert merged.members == local.members


def test_merge_uses_remote_members_when_local_has_none():
    remote = record(members=(DirectoryMember('b.txt', 'b.txt', 2),))

    assert merge_records(None, remote) == remote
    assert merge_records(record(), remote).members == remote.members


def test_string_encoded_members_are_normalized():
    wire = SystemHashRecord.model_validate({
        'hash': 'QmDir',
        'isDirectory': True,
        'files': json.dumps([{'path': 'x/y.txt', 'size': 3}]),
    })

    members = wire.to_domain().members
    assert members == (DirectoryMember('x/y.txt', 'y.txt', 3),)


def test_undecodable_or_invalid_members_become_empty():
    assert SystemHashRecord.model_validate({'hash': 'Qm1', 'files': '{not json'}).files == []
    assert SystemHashRecord.model_validate({'hash': 'Qm2', 'files': {'path': 'a'}}).files == []
    assert SystemHashRecord.model_validate({'hash': 'Qm3', 'files': [{'name': 'no path'}]}).files == []


def test_parse_records_skips_malformed_entries():
    records = parse_records({
        'QmGood': {'displayName': 'good.txt', 'fileSize': '12'},
        'QmBad': 'not a record',
    })

    assert list(records) == ['QmGood']
    assert records['QmGood'].size == 12


def test_cache_document_persists(tmp_path):
    path = tmp_path / 'cache.json'
    cache = LocalMetadataCache(str(path), clock=FakeClock())
    cache.put(record())

    document = json.loads(path.read_text())
    assert document['timestamp'] == 1_700_000_000_000
    assert document['data']['QmFile']['displayName'] == 'file.txt'

    reloaded = LocalMetadataCache(str(path), clock=FakeClock())
    assert reloaded.get('QmFile').display_name == 'file.txt'


def test_corrupted_cache_starts_empty(tmp_path):
    path = tmp_path / 'cache.json'
    path.write_text('{broken')

    cache = LocalMetadataCache(str(path))

    assert cache.records() == {}
    assert cache.timestamp == 0


@pytest.mark.asyncio
async def test_fresh_document_does_not_touch_relay(relay, tmp_path):
    clock = FakeClock()
    store = make_store(relay, tmp_path, clock)
    store.cache.put(record())

    clock.now += 299
    assert (await store.get('QmFile')).display_name == 'file.txt'
    await store.drain()

    assert relay.count('GET', '/api/v1/user-uploads/system-hashes-map') == 0


@pytest.mark.asyncio
async def test_stale_document_triggers_one_background_refresh(relay, tmp_path):
    clock = FakeClock()
    store = make_store(relay, tmp_path, clock)
    store.cache.put(record(display_name='local name'))
    relay.metadata['QmFile'] = {'hash': 'QmFile', 'displayName': 'remote name'}

    clock.now += 301
    first = await store.get('QmFile')
    second = await store.get('QmFile')
    await store.drain()

    assert first.display_name == 'local name'
    assert second.display_name == 'local name'
    assert relay.count('GET', '/api/v1/user-uploads/system-hashes-map') == 1
    assert store.cache.get('QmFile').display_name == 'remote name'
    assert not store.is_stale()


@pytest.mark.asyncio
async def test_refresh_keeps_local_members(relay, tmp_path):
    store = make_store(relay, tmp_path)
    members = (DirectoryMember('a.txt', 'a.txt', 10),)
    store.cache.put(record('QmDir', is_directory=True, members=members))
    relay.metadata['QmDir'] = {'hash': 'QmDir', 'displayName': 'renamed', 'isDirectory': True, 'files': '[]'}

    assert await store.refresh() is True

    merged = store.cache.get('QmDir')
    assert merged.display_name == 'renamed'
    assert merged.members == members


@pytest.mark.asyncio
async def test_refresh_failure_is_swallowed(relay, tmp_path):
    store = make_store(relay, tmp_path)
    relay.fail('GET', '/api/v1/user-uploads/system-hashes-map', status=500)

    assert await store.refresh() is False
    assert store.is_stale()


def test_out_of_range_upload_time_is_ignored():
    records = parse_records({
        'QmFar': {'displayName': 'far.txt', 'uploadedAt': 10**17},
        'QmHuge': {'displayName': 'huge.txt', 'timestamp': 10**30},
    })

    assert records['QmFar'].uploaded_at is None
    assert records['QmHuge'].uploaded_at is None


@pytest.mark.asyncio
async def test_refresh_tolerates_out_of_range_upload_time(relay, tmp_path):
    store = make_store(relay, tmp_path)
    relay.metadata['QmFar'] = {'hash': 'QmFar', 'displayName': 'far.txt', 'uploadedAt': 10**17}

    assert await store.refresh() is True
    assert store.cache.get('QmFar').display_name == 'far.txt'


@pytest.mark.asyncio
async def test_put_writes_locally_even_if_relay_fails(relay, tmp_path):
    store = make_store(relay, tmp_path)
    relay.fail('POST', '/api/v1/user-uploads/save-system-hash', status=503)

    await store.put(record())

    assert store.cache.get('QmFile') is not None
    assert 'QmFile' not in relay.metadata


@pytest.mark.asyncio
async def test_put_and_remove_reach_relay(relay, tmp_path):
    store = make_store(relay, tmp_path)

    await store.put(record())
    assert relay.metadata['QmFile']['displayName'] == 'file.txt'

    await store.remove('QmFile')
    assert 'QmFile' not in relay.metadata
    assert store.cache.get('QmFile') is None


@pytest.mark.asyncio
async def test_resolve_waits_for_refresh_on_miss(relay, tmp_path):
    store = make_store(relay, tmp_path)
    relay.metadata['QmRemote'] = {'hash': 'QmRemote', 'displayName': 'remote.txt'}

    resolved = await store.resolve('QmRemote')

    assert resolved.display_name == 'remote.txt'
    assert await store.resolve('QmUnknown') is None


@pytest.mark.asyncio
async def test_list_records_for_owner(relay, tmp_path):
    store = make_store(relay, tmp_path)
    relay.metadata['QmMine'] = {'hash': 'QmMine', 'userAddress': 'drive-user'}
    relay.metadata['QmTheirs'] = {'hash': 'QmTheirs', 'userAddress': 'someone-else'}

    records = await store.relay.list_records_for_owner('drive-user')

    assert [r.address for r in records] == ['QmMine']
