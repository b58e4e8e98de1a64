"""Tests for sealed destination payloads."""
import base64
import json
import os

import pytest

from payout_engine.services.sealing import SealingError, SecretSealer, get_sealer


@pytest.fixture
def sealer():
    return SecretSealer(os.urandom(32))


def test_seal_and_open(sealer):
    payload = {"account_number": "0123456789", "account_holder": "Marie Joseph"}
    envelope = sealer.seal(payload)

    assert "0123456789" not in envelope
    assert sealer.open(envelope) == payload


def test_envelope_format(sealer):
    envelope = json.loads(sealer.seal({"a": 1}))

    assert envelope["v"] == 1
    assert len(base64.b64decode(envelope["iv"])) == 12
    assert len(base64.b64decode(envelope["tag"])) == 16
    assert envelope["ciphertext"]


def test_same_payload_seals_differently(sealer):
    assert sealer.seal({"a": 1}) != sealer.seal({"a": 1})


def test_tampered_ciphertext_is_rejected(sealer):
    envelope = json.loads(sealer.seal({"account_number": "0123456789"}))
    raw = bytearray(base64.b64decode(envelope["ciphertext"]))
    raw[0] ^= 0x01
    envelope["ciphertext"] = base64.b64encode(bytes(raw)).decode("ascii")

    with pytest.raises(SealingError):
        sealer.open(json.dumps(envelope))


def test_wrong_key_is_rejected(sealer):
    envelope = sealer.seal({"a": 1})
    with pytest.raises(SealingError):
        SecretSealer(os.urandom(32)).open(envelope)


def test_unknown_version_is_rejected(sealer):
    envelope = json.loads(sealer.seal({"a": 1}))
    envelope["v"] = 2
    with pytest.raises(SealingError):
        sealer.open(json.dumps(envelope))


def test_malformed_envelope_is_rejected(sealer):
    with pytest.raises(SealingError):
        sealer.open("not json")
    with pytest.raises(SealingError):
        sealer.open(json.dumps({"v": 1, "iv": "abc"}))


def test_key_must_be_32_bytes():
    with pytest.raises(SealingError):
        SecretSealer(b"short")


def test_process_sealer_uses_configured_key():
    sealer = get_sealer()
    assert sealer is get_sealer()
    assert sealer.open(sealer.seal({"x": "y"})) == {"x": "y"}
