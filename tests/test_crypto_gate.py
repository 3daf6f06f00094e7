"""Tests for CryptoGate and the built-in primitive."""

import asyncio

import pytest

from drive.crypto_gate import CryptoGate, EncryptedBlob
from drive.exceptions import (
    DecryptionFailedError,
    EncryptionFailedError,
    MissingSecretError,
    PrimitiveUnavailableError,
)
from drive.primitives import SeaStylePrimitive


class BrokenPrimitive:
    def encrypt(self, plaintext, secret):
        raise RuntimeError("boom")

    def decrypt(self, ciphertext, secret):
        return None


class RawTextPrimitive:
    """Returns decrypted text that is not a data URI."""

    def encrypt(self, plaintext, secret):
        return "SEA{}"

    def decrypt(self, ciphertext, secret):
        return "plain words"


def test_primitive_output_has_ciphertext_prefix():
    ciphertext = SeaStylePrimitive().encrypt("data:text/plain;base64,aGk=", "secret")

    assert ciphertext.startswith("SEA{")
    assert CryptoGate.is_ciphertext(ciphertext)


def test_primitive_wrong_secret_returns_none():
    primitive = SeaStylePrimitive()
    ciphertext = primitive.encrypt("hello", "right")

    assert primitive.decrypt(ciphertext, "wrong") is None
    assert primitive.decrypt("SEA{not json", "right") is None


@pytest.mark.asyncio
async def test_encrypt_then_decrypt_restores_bytes():
    gate = CryptoGate(SeaStylePrimitive())
    data = bytes(range(256)) * 4

    blob = await gate.encrypt_payload(data, "secret", "application/octet-stream")

    assert isinstance(blob, EncryptedBlob)
    assert blob.content_type == "text/plain"
    assert await gate.decrypt_payload(blob, "secret") == data
    assert await gate.decrypt_payload(blob.to_bytes(), "secret") == data


@pytest.mark.asyncio
async def test_wrong_secret_fails_decryption():
    gate = CryptoGate(SeaStylePrimitive())
    blob = await gate.encrypt_payload(b"top secret", "secret")

    with pytest.raises(DecryptionFailedError):
        await gate.decrypt_payload(blob, "other")


@pytest.mark.asyncio
async def test_empty_secret_is_rejected():
    gate = CryptoGate(SeaStylePrimitive())

    with pytest.raises(MissingSecretError):
        await gate.encrypt_payload(b"x", "")
    with pytest.raises(MissingSecretError):
        await gate.decrypt_payload("SEA{}", "")


@pytest.mark.asyncio
async def test_primitive_error_becomes_encryption_failed():
    gate = CryptoGate(BrokenPrimitive())

    with pytest.raises(EncryptionFailedError):
        await gate.encrypt_payload(b"x", "secret")


@pytest.mark.asyncio
async def test_non_data_uri_result_is_taken_as_text():
    gate = CryptoGate(RawTextPrimitive())

    assert await gate.decrypt_payload("SEA{}", "secret") == b"plain words"


@pytest.mark.asyncio
async def test_missing_primitive_times_out():
    gate = CryptoGate(poll_attempts=3, poll_interval=0.01)

    with pytest.raises(PrimitiveUnavailableError):
        await gate.encrypt_payload(b"x", "secret")


@pytest.mark.asyncio
async def test_primitive_installed_while_polling():
    gate = CryptoGate(poll_attempts=10, poll_interval=0.01)

    async def install_later():
        await asyncio.sleep(0.02)
        gate.install_primitive(SeaStylePrimitive())

    installer = asyncio.create_task(install_later())
    blob = await gate.encrypt_payload(b"late", "secret")
    await installer

    assert gate.is_ready
    assert await gate.decrypt_payload(blob, "secret") == b"late"
