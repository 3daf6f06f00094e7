"""Tests for TransferPipeline: uploads, retries, streaming and decrypt detection."""

import asyncio

import httpx
import pytest

from drive.credentials import Credential, CredentialProvider
from drive.crypto_gate import CryptoGate
from drive.exceptions import (
    CredentialMissingError,
    DownloadFailedError,
    DownloadTimeoutError,
    EmptyPayloadError,
    MissingSecretError,
)
from drive.primitives import SeaStylePrimitive
from drive.relay.session import RelaySession
from drive.relay.storage_client import StorageClient
from drive.transfer import TransferPipeline
from fixtures.fake_relay import RELAY_URL, TOKEN, FakeRelay


def make_pipeline(relay: FakeRelay, token: str = TOKEN, **kwargs) -> TransferPipeline:
    credentials = CredentialProvider(Credential(bearer_token=token))
    session = RelaySession(RELAY_URL, credentials, client=relay.client())
    kwargs.setdefault('backoff_seconds', 0.0)
    return TransferPipeline(StorageClient(session), CryptoGate(SeaStylePrimitive()), credentials, **kwargs)


@pytest.mark.asyncio
async def test_plain_upload_and_download(relay):
    pipeline = make_pipeline(relay)

    blob = await pipeline.upload_blob(b'hello world', 'hello.txt', encrypt=False)

    assert blob.encrypted is False
    assert blob.content_kind == 'text/plain'
    assert relay.pins[blob.address]['Name'] == 'hello.txt'
    assert await pipeline.download(blob.address) == b'hello world'


@pytest.mark.asyncio
async def test_encrypted_upload_is_ciphertext_and_decrypts_locally(relay):
    pipeline = make_pipeline(relay)
    data = b'\x89PNG fake image bytes'

    blob = await pipeline.upload_blob(data, 'photo.png', encrypt=True)

    stored, content_type = relay.blobs[blob.address]
    assert stored.startswith(b'SEA{')
    assert content_type == 'text/plain'
    assert relay.pins[blob.address]['Name'] == 'photo.png.enc'

    assert await pipeline.download(blob.address, encrypted=True) == data
    fetch = [r for r in relay.requests if r.url.path.startswith('/ipfs-content/')][-1]
    assert fetch.url.params['token'] == TOKEN


@pytest.mark.asyncio
async def test_encrypted_suffix_is_not_duplicated(relay):
    pipeline = make_pipeline(relay)

    blob = await pipeline.upload_blob(b'x', 'notes.txt.enc', encrypt=True)

    assert relay.pins[blob.address]['Name'] == 'notes.txt.enc'


@pytest.mark.asyncio
async def test_server_side_decryption_is_used_as_is():
    relay = FakeRelay(server_decrypts=True)
    pipeline = make_pipeline(relay)
    statuses = []
    pipeline.events.on_status(lambda event: statuses.append(event.status))

    blob = await pipeline.upload_blob(b'\x00\x01binary', 'data.bin', encrypt=True)
    data = await pipeline.download(blob.address, encrypted=True)

    assert data == b'\x00\x01binary'
    assert 'decrypting' not in statuses


@pytest.mark.asyncio
async def test_binary_content_type_skips_decryption(relay):
    pipeline = make_pipeline(relay)
    relay.blobs['QmBinary'] = (b'SEA{looks like ciphertext but is binary}', 'image/png')

    data = await pipeline.download('QmBinary', encrypted=True)

    assert data == b'SEA{looks like ciphertext but is binary}'


@pytest.mark.asyncio
async def test_plain_text_without_prefix_is_final(relay):
    pipeline = make_pipeline(relay)
    relay.blobs['QmText'] = (b'already decrypted text', 'text/plain')

    assert await pipeline.download('QmText', encrypted=True) == b'already decrypted text'


@pytest.mark.asyncio
async def test_retry_bound_is_three_attempts(relay):
    pipeline = make_pipeline(relay)
    relay.blobs['QmData'] = (b'payload', 'text/plain')
    relay.fail('GET', '/ipfs-content/', times=3, exception=httpx.ConnectError)

    with pytest.raises(DownloadFailedError):
        await pipeline.download('QmData')

    assert relay.count('GET', '/ipfs-content/') == 3


@pytest.mark.asyncio
async def test_transient_failures_recover_with_linear_backoff(relay, monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    pipeline = make_pipeline(relay, backoff_seconds=1.0)
    relay.blobs['QmData'] = (b'payload', 'text/plain')
    relay.fail('GET', '/ipfs-content/', times=2, exception=httpx.ReadError)
    monkeypatch.setattr(asyncio, 'sleep', fake_sleep)

    assert await pipeline.download('QmData') == b'payload'
    assert delays == [1.0, 2.0]
    assert relay.count('GET', '/ipfs-content/') == 3


@pytest.mark.asyncio
async def test_error_status_is_not_retried(relay):
    pipeline = make_pipeline(relay)
    relay.blobs['QmData'] = (b'payload', 'text/plain')
    relay.fail('GET', '/ipfs-content/', times=3, status=500)

    with pytest.raises(DownloadFailedError):
        await pipeline.download('QmData')

    assert relay.count('GET', '/ipfs-content/') == 1


@pytest.mark.asyncio
async def test_missing_content_fails_without_retry(relay):
    pipeline = make_pipeline(relay)

    with pytest.raises(DownloadFailedError):
        await pipeline.download('QmMissing')

    assert relay.count('GET', '/ipfs-content/') == 1


@pytest.mark.asyncio
async def test_repeated_transport_timeouts_raise_timeout(relay):
    pipeline = make_pipeline(relay)
    relay.blobs['QmData'] = (b'payload', 'text/plain')
    relay.fail('GET', '/ipfs-content/', times=3, exception=httpx.ReadTimeout)

    with pytest.raises(DownloadTimeoutError):
        await pipeline.download('QmData')


@pytest.mark.asyncio
async def test_attempt_ceiling_raises_timeout(relay):
    pipeline = make_pipeline(relay, download_timeout=0.05)
    relay.blobs['QmSlow'] = (b'payload', 'text/plain')
    relay.fail('GET', '/ipfs-content/', times=3, delay=1.0)

    with pytest.raises(DownloadTimeoutError):
        await pipeline.download('QmSlow')

    assert relay.count('GET', '/ipfs-content/') == 3


@pytest.mark.asyncio
async def test_empty_payload_is_an_error(relay):
    pipeline = make_pipeline(relay)
    relay.blobs['QmEmpty'] = (b'', 'application/octet-stream')

    with pytest.raises(EmptyPayloadError):
        await pipeline.download('QmEmpty')


@pytest.mark.asyncio
async def test_large_download_streams_with_progress(relay):
    pipeline = make_pipeline(relay, stream_threshold=16)
    data = b'z' * 100
    relay.blobs['QmBig'] = (data, 'application/octet-stream')
    events = []
    pipeline.events.on_progress(events.append)

    assert await pipeline.download('QmBig', size_hint=100) == data
    assert events
    assert events[-1].loaded == 100
    assert events[-1].total == 100
    assert events[-1].progress == 100


@pytest.mark.asyncio
async def test_small_download_emits_no_progress(relay):
    pipeline = make_pipeline(relay, stream_threshold=1024)
    relay.blobs['QmSmall'] = (b'tiny', 'text/plain')
    events = []
    pipeline.events.on_progress(events.append)

    await pipeline.download('QmSmall', size_hint=4)

    assert events == []


@pytest.mark.asyncio
async def test_batch_upload_preserves_relative_paths(relay):
    pipeline = make_pipeline(relay)

    address = await pipeline.upload_batch(
        [('a.txt', b'A'), ('docs/b.md', b'B'), ('docs/deep/c.json', b'{}')],
        'project',
    )

    assert relay.member_paths(address) == ['a.txt', 'docs/b.md', 'docs/deep/c.json']
    assert relay.pins[address]['Name'] == 'project'
    assert await pipeline.download_member(address, 'docs/b.md') == b'B'


@pytest.mark.asyncio
async def test_encrypted_batch_members_decrypt(relay):
    pipeline = make_pipeline(relay)

    address = await pipeline.upload_batch([('secret.txt', b'classified')], 'vault', encrypt=True)

    stored, _ = relay.directories[address]['secret.txt']
    assert stored.startswith(b'SEA{')
    assert await pipeline.download_member(address, 'secret.txt', encrypted=True) == b'classified'


@pytest.mark.asyncio
async def test_upload_requires_credential(relay):
    pipeline = make_pipeline(relay, token=None)

    with pytest.raises(CredentialMissingError):
        await pipeline.upload_blob(b'x', 'x.txt', encrypt=False)

    assert relay.requests == []


@pytest.mark.asyncio
async def test_encrypted_download_requires_secret(relay):
    pipeline = make_pipeline(relay, token=None)

    with pytest.raises(MissingSecretError):
        await pipeline.download('QmAnything', encrypted=True)
