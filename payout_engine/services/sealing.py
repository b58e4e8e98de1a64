"""Authenticated encryption for payout destination details.

Envelopes are JSON: ``{"v": 1, "iv": ..., "tag": ..., "ciphertext": ...}``
with base64 fields, sealed with AES-256-GCM.
"""
import base64
import json
import os
from functools import lru_cache
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from payout_engine.config import settings

ENVELOPE_VERSION = 1
IV_BYTES = 12
TAG_BYTES = 16


class SealingError(Exception):
    """Raised when a payload cannot be sealed or an envelope cannot be opened."""


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"), validate=True)


class SecretSealer:
    """Seals JSON-serialisable payloads under a single process-wide key."""

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise SealingError("Payout encryption key must be 32 bytes")
        self._aesgcm = AESGCM(key)

    def seal(self, data: Dict[str, Any]) -> str:
        iv = os.urandom(IV_BYTES)
        plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
        sealed = self._aesgcm.encrypt(iv, plaintext, None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return json.dumps({
            "v": ENVELOPE_VERSION,
            "iv": _b64encode(iv),
            "tag": _b64encode(tag),
            "ciphertext": _b64encode(ciphertext),
        })

    def open(self, envelope: str) -> Dict[str, Any]:
        try:
            parsed = json.loads(envelope)
            if parsed.get("v") != ENVELOPE_VERSION:
                raise SealingError(f"Unsupported envelope version: {parsed.get('v')}")
            iv = _b64decode(parsed["iv"])
            tag = _b64decode(parsed["tag"])
            ciphertext = _b64decode(parsed["ciphertext"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SealingError(f"Malformed envelope: {e}") from e

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise SealingError("Envelope failed authentication") from e
        return json.loads(plaintext.decode("utf-8"))


@lru_cache(maxsize=1)
def get_sealer() -> SecretSealer:
    """Process-wide sealer built from ``PAYOUT_ENCRYPTION_KEY``."""
    if not settings.PAYOUT_ENCRYPTION_KEY:
        raise SealingError("PAYOUT_ENCRYPTION_KEY is not configured")
    try:
        key = base64.b64decode(settings.PAYOUT_ENCRYPTION_KEY)
    except ValueError as e:
        raise SealingError("PAYOUT_ENCRYPTION_KEY must be base64 encoded") from e
    return SecretSealer(key)
