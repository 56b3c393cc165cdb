from __future__ import annotations
import secrets
from typing import Optional

from corelink.client.errors import (
    DecryptionError, InvalidKeyError, PayloadTooLargeError, ProtocolError,
)
from corelink.crypto.keys import KeyPair
from corelink.crypto.primitives import b64d, b64e
from corelink.protocol.constants import NONCE_LENGTH, PKCS1V15_OVERHEAD


def require_rsa():
    try:
        from cryptography.exceptions import UnsupportedAlgorithm
        from cryptography.hazmat.primitives import serialization
        from cryptography.hazmat.primitives.asymmetric import padding, rsa
        return serialization, padding, rsa, UnsupportedAlgorithm
    except ImportError as e:
        raise RuntimeError("Missing dependency 'cryptography'") from e


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def load_public_key(pem: str | bytes):
    serialization, _, rsa, UnsupportedAlgorithm = require_rsa()
    try:
        key = serialization.load_pem_public_key(_as_bytes(pem))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyError("public key is not a valid PEM key") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidKeyError(f"expected an RSA public key, got {type(key).__name__}")
    return key


def load_private_key(pem: str | bytes):
    serialization, _, rsa, UnsupportedAlgorithm = require_rsa()
    try:
        key = serialization.load_pem_private_key(_as_bytes(pem), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyError("private key is not a valid unencrypted PEM key") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidKeyError(f"expected an RSA private key, got {type(key).__name__}")
    return key


def max_plaintext_size(public_key) -> int:
    if isinstance(public_key, (str, bytes)):
        public_key = load_public_key(public_key)
    return public_key.key_size // 8 - PKCS1V15_OVERHEAD


def random_string(length: int = NONCE_LENGTH) -> str:
    if length <= 0:
        raise ValueError("length must be positive")
    return secrets.token_hex((length + 1) // 2)[:length]


class AsymmetricCipher:
    """
    RSA PKCS#1 v1.5 encryption bound to our own key pair and, once known, the
    remote party's public key. Payloads are limited to a single RSA block.
    """

    def __init__(self, own_key_pair: KeyPair, remote_public_key: Optional[str] = None, private_key=None):
        if private_key is None:
            private_key = load_private_key(own_key_pair.private_key)
        self._private_key = private_key
        self._remote_key = load_public_key(remote_public_key) if remote_public_key else None

    @property
    def has_remote_key(self) -> bool:
        return self._remote_key is not None

    def encrypt(self, recipient_public_key, plaintext: str | bytes) -> str:
        _, padding, _, _ = require_rsa()
        if isinstance(recipient_public_key, (str, bytes)):
            recipient_public_key = load_public_key(recipient_public_key)
        data = _as_bytes(plaintext)
        limit = max_plaintext_size(recipient_public_key)
        if len(data) > limit:
            raise PayloadTooLargeError(len(data), limit)
        return b64e(recipient_public_key.encrypt(data, padding.PKCS1v15()))

    def encrypt_for_remote(self, plaintext: str | bytes) -> str:
        if self._remote_key is None:
            raise ProtocolError("no remote public key bound to cipher")
        return self.encrypt(self._remote_key, plaintext)

    def decrypt_bytes(self, ciphertext_b64: str) -> bytes:
        _, padding, _, _ = require_rsa()
        try:
            ct = b64d(ciphertext_b64)
        except (ValueError, TypeError) as e:
            raise DecryptionError("ciphertext is not valid base64") from e
        if len(ct) != self._private_key.key_size // 8:
            raise DecryptionError(f"ciphertext length {len(ct)} does not match key size")
        try:
            return self._private_key.decrypt(ct, padding.PKCS1v15())
        except ValueError as e:
            raise DecryptionError("decryption failed") from e

    def decrypt(self, ciphertext_b64: str) -> str:
        data = self.decrypt_bytes(ciphertext_b64)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("decrypted payload is not valid UTF-8") from e
