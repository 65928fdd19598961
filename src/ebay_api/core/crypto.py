"""Encryption utilities for protecting tokens at rest.

Two primitives share one key derivation (SHA-256 of the configured secret):

- :func:`encrypt_secret` / :func:`decrypt_secret` wrap AES-256-GCM with a
  random 96-bit nonce per call. The envelope is::

      v1:<nonce>:<tag>:<ciphertext>

  with every segment in unpadded URL-safe base64.
- :func:`sign_state_token` / :func:`verify_state_token` produce HMAC-SHA256
  signed JSON payloads for stateless cross-request state. Expiry is the
  caller's job (see :func:`is_state_token_expired`).
"""

import base64
import binascii
import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ebay_api.core.errors import AuthenticationError, FormatError

_VERSION = "v1"
_NONCE_SIZE = 12  # 96-bit nonce recommended for AES-GCM
_TAG_SIZE = 16


def to_base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def from_base64url(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def derive_key(secret_key: str) -> bytes:
    """Derive a 32-byte key from the application secret."""
    return hashlib.sha256(secret_key.encode("utf-8")).digest()


def encrypt_bytes(plaintext: bytes, secret_key: str) -> str:
    """Encrypt raw bytes into a versioned envelope."""
    nonce = os.urandom(_NONCE_SIZE)
    sealed = AESGCM(derive_key(secret_key)).encrypt(nonce, plaintext, None)
    ciphertext, tag = sealed[:-_TAG_SIZE], sealed[-_TAG_SIZE:]
    return ":".join([_VERSION, to_base64url(nonce), to_base64url(tag), to_base64url(ciphertext)])


def decrypt_bytes(envelope: str, secret_key: str) -> bytes:
    """Decrypt an envelope produced by :func:`encrypt_bytes`.

    Raises:
        FormatError: unknown version, missing segment or undecodable segment
        AuthenticationError: wrong key or tampered envelope
    """
    parts = envelope.split(":") if isinstance(envelope, str) else []
    if len(parts) != 4 or parts[0] != _VERSION:
        raise FormatError("Unsupported ciphertext format")

    _, nonce_b64, tag_b64, data_b64 = parts
    # Empty plaintext encrypts to an empty ciphertext segment
    if not nonce_b64 or not tag_b64:
        raise FormatError("Ciphertext envelope is missing a segment")

    try:
        nonce = from_base64url(nonce_b64)
        tag = from_base64url(tag_b64)
        data = from_base64url(data_b64)
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Ciphertext envelope is not valid base64url: {e}") from e

    if len(nonce) != _NONCE_SIZE or len(tag) != _TAG_SIZE:
        raise FormatError("Ciphertext envelope has wrong nonce or tag size")

    try:
        return AESGCM(derive_key(secret_key)).decrypt(nonce, data + tag, None)
    except InvalidTag as e:
        raise AuthenticationError("Ciphertext failed integrity check") from e


def encrypt_secret(plaintext: Union[str, bytes], secret_key: str) -> str:
    """Encrypt a token for storage."""
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    return encrypt_bytes(plaintext, secret_key)


def decrypt_secret(envelope: str, secret_key: str) -> str:
    """Decrypt a stored token back to text."""
    raw = decrypt_bytes(envelope, secret_key)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError("Decrypted secret is not UTF-8 text") from e


def _state_signature(body_b64: str, secret_key: str) -> bytes:
    return hmac.new(derive_key(secret_key), body_b64.encode("ascii"), hashlib.sha256).digest()


def sign_state_token(payload: Dict[str, Any], secret_key: str) -> str:
    """Encode a JSON payload and sign it."""
    body_b64 = to_base64url(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{body_b64}.{to_base64url(_state_signature(body_b64, secret_key))}"


def verify_state_token(token: str, secret_key: str) -> Optional[Dict[str, Any]]:
    """Return the payload of a valid token, or None."""
    if not isinstance(token, str):
        return None

    parts = token.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    body_b64, signature_b64 = parts

    try:
        signature = from_base64url(signature_b64)
        expected = _state_signature(body_b64, secret_key)
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return None

    if not hmac.compare_digest(signature, expected):
        return None

    try:
        payload = json.loads(from_base64url(body_b64).decode("utf-8"))
    except (binascii.Error, ValueError):
        return None

    return payload if isinstance(payload, dict) else None


def is_state_token_expired(payload: Dict[str, Any], now: Optional[float] = None) -> bool:
    """Check the ``exp`` epoch-seconds field of a verified payload."""
    expires_at = payload.get("exp")
    if not isinstance(expires_at, (int, float)):
        return True
    return (now if now is not None else time.time()) >= expires_at
